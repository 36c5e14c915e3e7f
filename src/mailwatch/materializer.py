"""Collision-safe writing of message bodies and attachments."""

from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import BinaryIO, Sequence

from .errors import FilesystemError, ResourceExhaustedError
from .layout import attachment_dir

MAX_COUNTER = 1000
ATTACHMENT_SEPARATOR = ";"


def body_filename(timestamp_tag: str, counter: int) -> str:
    return f"{timestamp_tag}.{counter:03d}"


def safe_attachment_name(filename: str, position: int) -> str:
    """Reduce an attachment filename to its last path component.

    The summary separator is replaced with ``_`` so the joined names split
    back apart. Falls back to ``attachment-<position>`` if nothing usable
    remains.
    """
    name = PureWindowsPath(PurePosixPath(filename or "").name).name
    name = name.replace(ATTACHMENT_SEPARATOR, "_")
    if name in ("", ".", ".."):
        return f"attachment-{position}"
    return name


class FileMaterializer:
    """Allocate body files and write message content to disk.

    Body files are created exclusively, so two writers racing on the same
    timestamp never overwrite each other's file.
    """

    def __init__(self, max_counter: int = MAX_COUNTER):
        self.max_counter = max_counter

    def reserve_body_file(self, directory: str | Path, timestamp_tag: str) -> tuple[Path, BinaryIO]:
        """Create ``<directory>/<timestamp_tag>.<NNN>`` with the lowest free counter.

        Returns the path and an open binary handle, which the caller must close.
        Raises ResourceExhaustedError after ``max_counter`` collisions.
        """
        directory = Path(directory)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Can't create directory {directory}: {e}") from e

        for counter in range(self.max_counter):
            path = directory / body_filename(timestamp_tag, counter)
            try:
                return path, open(path, "xb")
            except FileExistsError:
                continue
            except OSError as e:
                raise FilesystemError(f"Can't create file {path}: {e}") from e

        last = directory / body_filename(timestamp_tag, self.max_counter - 1)
        raise ResourceExhaustedError(
            f"Can't create file: {last}: {self.max_counter} names already taken"
        )

    def write_body(self, handle: BinaryIO, content: bytes) -> None:
        """Write the full body content to a reserved handle."""
        try:
            handle.write(content)
            handle.flush()
        except OSError as e:
            raise FilesystemError(f"Can't write {handle.name}: {e}") from e

    def write_attachments(
        self,
        body_path: str | Path,
        attachments: Sequence[tuple[str, bytes]],
    ) -> str:
        """Write attachments into ``<body_path>.d`` and return their ``;``-joined names.

        Nothing is created for an empty list. Duplicate names within one
        message overwrite each other (last write wins).
        """
        if not attachments:
            return ""

        att_dir = attachment_dir(body_path)
        try:
            att_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Can't create directory {att_dir}: {e}") from e

        names = []
        for i, (filename, data) in enumerate(attachments):
            name = safe_attachment_name(filename, i)
            path = att_dir / name
            try:
                path.write_bytes(data)
            except OSError as e:
                raise FilesystemError(f"Can't write attachment {path}: {e}") from e
            names.append(name)
        return ATTACHMENT_SEPARATOR.join(names)
