"""Incremental sync: write each new message to disk once, then index it."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from .config import SyncConfig
from .imap import MessageSource
from .index import IndexRecord, MailIndex
from .layout import StorageLayout
from .materializer import FileMaterializer
from .message import MaterializedMessage


class MessageState(Enum):
    """Per-message processing states.

    FETCHED -> SKIPPED, or FETCHED -> CHECKED_NEW -> WRITTEN -> INDEXED.
    """
    FETCHED = "fetched"
    SKIPPED = "skipped"
    CHECKED_NEW = "checked_new"
    WRITTEN = "written"
    INDEXED = "indexed"


ProgressCallback = Callable[[MaterializedMessage, MessageState], None]


@dataclass
class SyncStats:
    """Counts for one sync run."""
    fetched: int = 0
    skipped: int = 0
    written: int = 0
    bytes_written: int = 0


@dataclass
class WriteResult:
    """Files produced for one message."""
    body_path: Path
    attachments: str
    size: int


class SyncEngine:
    """Materialize messages exactly once under a storage base.

    For each message: check the index, write the body and attachments, then
    insert the index record. The insert comes last, so a crash in between
    leaves an unindexed file on disk rather than a record pointing at nothing;
    a rerun writes the message again under the next free counter.

    Any error aborts the run. Nothing is retried or skipped on failure.
    """

    def __init__(
        self,
        config: SyncConfig,
        index: MailIndex,
        materializer: FileMaterializer | None = None,
    ):
        self.config = config
        self.index = index
        self.materializer = materializer or FileMaterializer()
        self.stats = SyncStats()

    def run(
        self,
        source: MessageSource,
        progress_callback: ProgressCallback | None = None,
    ) -> SyncStats:
        """Fetch messages for the configured query and process them in order."""
        return self.process_all(source.fetch(self.config.query), progress_callback)

    def process_all(
        self,
        messages: Iterable[MaterializedMessage],
        progress_callback: ProgressCallback | None = None,
    ) -> SyncStats:
        """Process a finite sequence of messages one at a time."""
        self.stats = SyncStats()
        for msg in messages:
            state = self.process(msg)
            if progress_callback:
                progress_callback(msg, state)
        return self.stats

    def process(self, msg: MaterializedMessage) -> MessageState:
        """Carry one message to its terminal state. Returns that state."""
        self.stats.fetched += 1

        if self.index.exists(msg.message_id):
            self.stats.skipped += 1
            return MessageState.SKIPPED

        if self.config.dry_run:
            return MessageState.CHECKED_NEW

        layout = StorageLayout.for_message(self.config.basedir, msg.sender, msg.date)
        result = self.write(msg, layout)
        self.stats.written += 1
        self.stats.bytes_written += result.size

        self.index.insert(self.build_record(msg, layout, result))
        return MessageState.INDEXED

    def write(self, msg: MaterializedMessage, layout: StorageLayout) -> WriteResult:
        """Write body and attachments for a new message (CHECKED_NEW -> WRITTEN)."""
        body = msg.body_bytes()
        path, handle = self.materializer.reserve_body_file(layout.directory, layout.timestamp_tag)
        with handle:
            self.materializer.write_body(handle, body)

        attachments = self.materializer.write_attachments(
            path,
            [(att.filename, att.data) for att in msg.attachments],
        )
        size = len(body) + sum(len(att.data) for att in msg.attachments)
        return WriteResult(body_path=path, attachments=attachments, size=size)

    def build_record(
        self,
        msg: MaterializedMessage,
        layout: StorageLayout,
        result: WriteResult,
    ) -> IndexRecord:
        """Index record for a written message (WRITTEN -> INDEXED)."""
        return IndexRecord(
            message_id=msg.message_id,
            thread_id=msg.thread_id,
            date=layout.date,
            time=layout.time,
            sender=msg.sender,
            subject=msg.subject,
            filename=str(result.body_path),
            attachments=result.attachments,
        )
