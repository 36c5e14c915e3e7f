"""Message sources: the MessageSource protocol and an IMAP implementation."""

import imaplib
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Protocol, runtime_checkable

from .errors import SourceError
from .message import MaterializedMessage

GMAIL_IMAP_HOST = "imap.gmail.com"
IMAP_PORT = 993
MAX_RESULTS = 500

# IMAP dates use English month names regardless of locale
MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

GM_IDS_RE = re.compile(rb"X-GM-MSGID (\d+)|X-GM-THRID (\d+)")


def imap_date(d: date) -> str:
    """Format a date for IMAP SEARCH (e.g. ``05-Mar-2024``)."""
    return f"{d.day:02d}-{MONTHS[d.month - 1]}-{d.year}"


@dataclass
class SearchQuery:
    """Which messages to fetch.

    Absolute bounds (``start_date``/``end_date``) and relative ones
    (``newer_than_days``/``older_than_days``) may both be set; all given bounds
    apply. ``end_date`` and ``older_than_days`` are exclusive.
    """
    folder: str = "INBOX"
    start_date: date | None = None
    end_date: date | None = None
    newer_than_days: int | None = None
    older_than_days: int | None = None
    max_results: int = MAX_RESULTS

    def __post_init__(self):
        if not 1 <= self.max_results <= MAX_RESULTS:
            raise ValueError(f"max_results must be between 1 and {MAX_RESULTS}, got {self.max_results}")

    def build_imap_criteria(self, today: date | None = None) -> str:
        """Build IMAP SEARCH criteria from the date bounds."""
        today = today or date.today()
        terms: list[str] = []

        if self.start_date:
            terms.append(f"SINCE {imap_date(self.start_date)}")
        if self.end_date:
            terms.append(f"BEFORE {imap_date(self.end_date)}")
        if self.newer_than_days is not None:
            terms.append(f"SINCE {imap_date(today - timedelta(days=self.newer_than_days))}")
        if self.older_than_days is not None:
            terms.append(f"BEFORE {imap_date(today - timedelta(days=self.older_than_days))}")

        return " ".join(terms) if terms else "ALL"


@runtime_checkable
class MessageSource(Protocol):
    """Anything that yields messages for a query, in a stable order."""

    def fetch(self, query: SearchQuery) -> Iterator[MaterializedMessage]:
        ...


class IMAPClient:
    """IMAP client yielding MaterializedMessages."""

    def __init__(self, host: str, port: int = IMAP_PORT):
        self.host = host
        self.port = port
        self._conn: imaplib.IMAP4_SSL | None = None

    def connect(self, user: str, password: str) -> None:
        try:
            self._conn = imaplib.IMAP4_SSL(self.host, self.port)
            self._conn.login(user, password)
        except (OSError, imaplib.IMAP4.error) as e:
            self.disconnect()
            raise SourceError(f"Can't log in to {self.host} as {user}: {e}") from e

    def disconnect(self) -> None:
        if self._conn:
            try:
                self._conn.logout()
            except (OSError, imaplib.IMAP4.error):
                pass
            self._conn = None

    @property
    def conn(self) -> imaplib.IMAP4_SSL:
        if not self._conn:
            raise RuntimeError("Not connected")
        return self._conn

    @property
    def is_gmail(self) -> bool:
        """Whether the server supports Gmail's X-GM-* extensions."""
        return "X-GM-EXT-1" in self.conn.capabilities

    def select_folder(self, folder: str) -> int:
        """Select a folder read-only, return message count."""
        try:
            typ, data = self.conn.select(folder, readonly=True)
        except (OSError, imaplib.IMAP4.error) as e:
            raise SourceError(f"Failed to select folder {folder}: {e}") from e
        if typ != "OK":
            raise SourceError(f"Failed to select folder {folder}: {data}")
        return int(data[0])

    def search(self, criteria: str) -> list[bytes]:
        """Search for messages matching criteria, return UIDs."""
        try:
            typ, data = self.conn.uid("SEARCH", None, criteria)
        except (OSError, imaplib.IMAP4.error) as e:
            raise SourceError(f"Search failed: {e}") from e
        if typ != "OK":
            raise SourceError(f"Search failed: {data}")
        return data[0].split()

    def fetch_message(self, uid: bytes) -> MaterializedMessage:
        """Fetch and parse one full message by UID."""
        gmail = self.is_gmail
        items = "(X-GM-MSGID X-GM-THRID RFC822)" if gmail else "(RFC822)"
        try:
            typ, data = self.conn.uid("FETCH", uid, items)
        except (OSError, imaplib.IMAP4.error) as e:
            raise SourceError(f"Failed to fetch message for UID {uid!r}: {e}") from e
        if typ != "OK" or not data or not isinstance(data[0], tuple):
            raise SourceError(f"Failed to fetch message for UID {uid!r}")

        meta, raw = data[0]
        message_id = thread_id = None
        if gmail:
            # Gmail API IDs are the hex form of the X-GM-* numbers
            for msgid, thrid in GM_IDS_RE.findall(meta):
                if msgid:
                    message_id = format(int(msgid), "x")
                if thrid:
                    thread_id = format(int(thrid), "x")
        return MaterializedMessage.from_bytes(raw, message_id=message_id, thread_id=thread_id)

    def fetch(self, query: SearchQuery) -> Iterator[MaterializedMessage]:
        """Yield the newest ``query.max_results`` matching messages, newest first."""
        self.select_folder(query.folder)
        uids = self.search(query.build_imap_criteria())
        uids = sorted(uids, key=int, reverse=True)[:query.max_results]
        for uid in uids:
            yield self.fetch_message(uid)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.disconnect()


class GmailClient(IMAPClient):
    """Gmail-specific IMAP client."""

    def __init__(self):
        super().__init__(GMAIL_IMAP_HOST, IMAP_PORT)


def get_imap_client(host: str, port: int = IMAP_PORT) -> IMAPClient:
    """Get appropriate IMAP client for host."""
    if host.lower() in ("gmail", GMAIL_IMAP_HOST):
        return GmailClient()
    return IMAPClient(host, port)
