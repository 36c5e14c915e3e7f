"""Durable message index stored in SQLite."""

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .errors import DuplicateKeyError, StorageError

INDEX_DB = "index.sqlite.db"

SCHEMA = """
    CREATE TABLE mailidx(
        messageid   CHAR(20) PRIMARY KEY NOT NULL,
        threadid    CHAR(20)             NOT NULL,
        date        CHAR(9)              NOT NULL,
        time        CHAR(10)             NOT NULL,
        sender      TEXT                 NOT NULL,
        subject     TEXT                 NOT NULL,
        filename    TEXT                 NOT NULL,
        attachments TEXT
    );

    CREATE INDEX threadidx ON mailidx(threadid);
"""


@dataclass
class IndexRecord:
    """One successfully materialized message."""
    message_id: str
    thread_id: str
    date: str  # YYYYMMDD
    time: str  # HHMMSS
    sender: str
    subject: str
    filename: str
    attachments: str = ""

    @property
    def attachment_names(self) -> list[str]:
        return self.attachments.split(";") if self.attachments else []


def get_index_path(basedir: str | Path) -> Path:
    """Get path to the index database under a storage base."""
    return Path(basedir) / INDEX_DB


class MailIndex:
    """Append-only index of materialized messages, keyed by message ID.

    Records are inserted once and never updated or deleted. The index is the
    single source of truth for whether a message has already been processed.
    """

    def __init__(self, path: str | Path, readonly: bool = False):
        self.path = Path(path)
        self.readonly = readonly
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open the database, creating it with the mailidx schema if missing.

        An existing file is opened as-is; its schema is not re-validated.
        A read-only index never touches the filesystem: a missing file is
        opened as an empty in-memory index.
        """
        is_new = not self.path.exists()
        try:
            if self.readonly:
                if is_new:
                    self._conn = sqlite3.connect(":memory:")
                else:
                    uri = f"{self.path.resolve().as_uri()}?mode=ro"
                    self._conn = sqlite3.connect(uri, uri=True, timeout=30.0)
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self.path, timeout=30.0)
            self._conn.row_factory = sqlite3.Row
            if is_new:
                self._conn.executescript(SCHEMA)
                self._conn.commit()
        except (OSError, sqlite3.Error) as e:
            self.disconnect()
            raise StorageError(f"Can't open index {self.path}: {e}") from e

    def disconnect(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if not self._conn:
            raise RuntimeError("Not connected")
        return self._conn

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.disconnect()

    def exists(self, message_id: str) -> bool:
        """Check if a message has already been indexed."""
        return self._has_key(message_id)

    def _has_key(self, message_id: str) -> bool:
        try:
            cur = self.conn.execute(
                "SELECT messageid FROM mailidx WHERE messageid = ?",
                (message_id,)
            )
            return cur.fetchone() is not None
        except sqlite3.Error as e:
            raise StorageError(f"Index lookup failed for {message_id}: {e}") from e

    def insert(self, record: IndexRecord) -> None:
        """Insert and commit a record. Raises DuplicateKeyError if already present."""
        try:
            self.conn.execute(
                "INSERT INTO mailidx VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.message_id,
                    record.thread_id,
                    record.date,
                    record.time,
                    record.sender,
                    record.subject,
                    record.filename,
                    record.attachments,
                )
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            if self._has_key(record.message_id):
                raise DuplicateKeyError(record.message_id) from e
            raise StorageError(f"Index insert failed for {record.message_id}: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(f"Index insert failed for {record.message_id}: {e}") from e

    def get(self, message_id: str) -> IndexRecord | None:
        """Get the record for a message ID."""
        rows = self._query("SELECT * FROM mailidx WHERE messageid = ?", (message_id,))
        return next(rows, None)

    def iter_thread(self, thread_id: str) -> Iterator[IndexRecord]:
        """Iterate over a thread's records, oldest first."""
        return self._query(
            "SELECT * FROM mailidx WHERE threadid = ? ORDER BY date, time",
            (thread_id,)
        )

    def iter_records(self, limit: int | None = None) -> Iterator[IndexRecord]:
        """Iterate over all records, newest first."""
        query = "SELECT * FROM mailidx ORDER BY date DESC, time DESC"
        params: list = []
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        return self._query(query, params)

    def count(self) -> int:
        """Count indexed messages."""
        try:
            return self.conn.execute("SELECT COUNT(*) FROM mailidx").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError(f"Index count failed: {e}") from e

    def _query(self, query: str, params) -> Iterator[IndexRecord]:
        try:
            rows = self.conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Index query failed: {e}") from e
        for row in rows:
            yield self._row_to_record(row)

    def _row_to_record(self, row: sqlite3.Row) -> IndexRecord:
        """Convert a database row to IndexRecord."""
        return IndexRecord(
            message_id=row["messageid"],
            thread_id=row["threadid"],
            date=row["date"],
            time=row["time"],
            sender=row["sender"],
            subject=row["subject"],
            filename=row["filename"],
            attachments=row["attachments"] or "",
        )
