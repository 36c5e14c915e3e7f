"""Incremental mail download to a local directory tree with a SQLite index."""

from .address import normalize
from .config import AccountConfig, SyncConfig
from .errors import (
    ConfigError,
    DuplicateKeyError,
    FilesystemError,
    MailwatchError,
    ResourceExhaustedError,
    SourceError,
    StorageError,
)
from .imap import GmailClient, IMAPClient, MessageSource, SearchQuery
from .index import IndexRecord, MailIndex
from .layout import StorageLayout
from .materializer import FileMaterializer
from .message import Attachment, MaterializedMessage
from .sync import MessageState, SyncEngine, SyncStats

__all__ = [
    "AccountConfig",
    "Attachment",
    "ConfigError",
    "DuplicateKeyError",
    "FileMaterializer",
    "FilesystemError",
    "GmailClient",
    "IMAPClient",
    "IndexRecord",
    "MailIndex",
    "MailwatchError",
    "MaterializedMessage",
    "MessageSource",
    "MessageState",
    "ResourceExhaustedError",
    "SearchQuery",
    "SourceError",
    "StorageError",
    "StorageLayout",
    "SyncConfig",
    "SyncEngine",
    "SyncStats",
    "normalize",
]
