"""Exceptions raised while syncing messages to local storage."""


class MailwatchError(Exception):
    """Base class for mailwatch errors."""


class StorageError(MailwatchError):
    """The index backing store is unavailable or corrupt."""


class DuplicateKeyError(StorageError):
    """An index record already exists for this message ID."""

    def __init__(self, message_id: str):
        super().__init__(f"Message already indexed: {message_id}")
        self.message_id = message_id


class ResourceExhaustedError(MailwatchError):
    """No free collision counter was left for a body filename."""


class FilesystemError(MailwatchError):
    """Creating a directory or writing a file failed."""


class SourceError(MailwatchError):
    """The remote message source returned an error."""


class ConfigError(MailwatchError):
    """config.yaml could not be read or has the wrong shape."""
