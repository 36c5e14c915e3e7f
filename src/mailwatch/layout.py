"""Storage layout: where a message's files go under the storage base."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .address import normalize

DATE_FORMAT = "%Y%m%d"
TIME_FORMAT = "%H%M%S"
TIMESTAMP_FORMAT = f"{DATE_FORMAT}-{TIME_FORMAT}"
ATTACHMENT_DIR_SUFFIX = ".d"


def local_time(date: datetime | None) -> datetime:
    """Convert a message date to naive local time (now if missing)."""
    if date is None:
        return datetime.now()
    if date.tzinfo is not None:
        return date.astimezone().replace(tzinfo=None)
    return date


@dataclass
class StorageLayout:
    """Derived location of one message: ``<base>/<sender>/<YYYYMMDD>``.

    The body file is ``<directory>/<timestamp_tag>.<NNN>``, where ``NNN`` is
    picked at write time to avoid collisions; attachments go into a sibling
    ``<body file>.d`` directory.
    """
    directory: Path
    date: str
    time: str

    @property
    def timestamp_tag(self) -> str:
        return f"{self.date}-{self.time}"

    @classmethod
    def for_message(
        cls,
        basedir: str | Path,
        sender: str,
        date: datetime | None,
    ) -> "StorageLayout":
        """Compute the layout from a raw sender header and message date.

        A sender without a recognizable address maps to an empty path
        component, i.e. ``<base>/<YYYYMMDD>``.
        """
        dt = local_time(date)
        day = dt.strftime(DATE_FORMAT)
        directory = Path(basedir) / normalize(sender) / day
        return cls(
            directory=directory,
            date=day,
            time=dt.strftime(TIME_FORMAT),
        )


def attachment_dir(body_path: str | Path) -> Path:
    """Directory holding a body file's attachments."""
    return Path(f"{body_path}{ATTACHMENT_DIR_SUFFIX}")
