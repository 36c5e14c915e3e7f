"""Tests for collision-safe body and attachment writing."""

import io
import os

import pytest

from mailwatch.errors import FilesystemError, ResourceExhaustedError
from mailwatch.index import IndexRecord
from mailwatch.materializer import (
    MAX_COUNTER,
    FileMaterializer,
    body_filename,
    safe_attachment_name,
)

TAG = "20240315-143045"


class FailingHandle(io.BytesIO):
    """Body handle whose writes always fail."""
    name = "failing"

    def write(self, data):
        raise OSError("disk full")


@pytest.fixture
def materializer():
    return FileMaterializer()


def reserve(materializer, directory, content=b""):
    path, handle = materializer.reserve_body_file(directory, TAG)
    with handle:
        materializer.write_body(handle, content)
    return path


class TestReserveBodyFile:
    def test_creates_directory_and_first_file(self, materializer, tmp_path):
        directory = tmp_path / "a@b.com" / "20240315"
        path = reserve(materializer, directory, b"body")
        assert path == directory / f"{TAG}.000"
        assert path.read_bytes() == b"body"

    def test_collision_increments_counter(self, materializer, tmp_path):
        first = reserve(materializer, tmp_path, b"one")
        second = reserve(materializer, tmp_path, b"two")
        third = reserve(materializer, tmp_path, b"three")
        assert [p.name for p in (first, second, third)] == [
            f"{TAG}.000", f"{TAG}.001", f"{TAG}.002",
        ]
        assert first.read_bytes() == b"one"
        assert second.read_bytes() == b"two"

    def test_fills_lowest_gap(self, materializer, tmp_path):
        (tmp_path / f"{TAG}.001").write_bytes(b"taken")
        assert reserve(materializer, tmp_path).name == f"{TAG}.000"
        assert reserve(materializer, tmp_path).name == f"{TAG}.002"

    def test_existing_file_not_overwritten(self, materializer, tmp_path):
        existing = tmp_path / f"{TAG}.000"
        existing.write_bytes(b"original")
        reserve(materializer, tmp_path, b"new")
        assert existing.read_bytes() == b"original"

    def test_exhausted(self, tmp_path):
        materializer = FileMaterializer(max_counter=3)
        for _ in range(3):
            reserve(materializer, tmp_path)
        with pytest.raises(ResourceExhaustedError):
            materializer.reserve_body_file(tmp_path, TAG)

    def test_default_limit_is_1000(self, materializer, tmp_path):
        assert MAX_COUNTER == 1000
        for i in range(999):
            (tmp_path / body_filename(TAG, i)).touch()
        assert reserve(materializer, tmp_path).name == f"{TAG}.999"
        with pytest.raises(ResourceExhaustedError):
            materializer.reserve_body_file(tmp_path, TAG)

    def test_directory_blocked_by_file(self, materializer, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("x")
        with pytest.raises(FilesystemError):
            materializer.reserve_body_file(blocker / "20240315", TAG)

    def test_create_failure_is_filesystem_error(self, materializer, tmp_path):
        with pytest.raises(FilesystemError, match="Can't create file"):
            materializer.reserve_body_file(tmp_path, "x" * 300)

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_read_only_directory(self, materializer, tmp_path):
        directory = tmp_path / "ro"
        directory.mkdir()
        directory.chmod(0o500)
        try:
            with pytest.raises(FilesystemError, match="Can't create file"):
                materializer.reserve_body_file(directory, TAG)
        finally:
            directory.chmod(0o700)


class TestWriteBody:
    def test_write_failure(self, materializer):
        handle = FailingHandle()
        with pytest.raises(FilesystemError, match="disk full"):
            materializer.write_body(handle, b"data")


class TestWriteAttachments:
    def test_empty(self, materializer, tmp_path):
        body = reserve(materializer, tmp_path)
        assert materializer.write_attachments(body, []) == ""
        assert not (tmp_path / f"{body.name}.d").exists()

    def test_summary_and_files(self, materializer, tmp_path):
        body = reserve(materializer, tmp_path)
        names = materializer.write_attachments(body, [("a.txt", b"A"), ("b.pdf", b"%PDF")])
        assert names == "a.txt;b.pdf"
        att_dir = tmp_path / f"{body.name}.d"
        assert (att_dir / "a.txt").read_bytes() == b"A"
        assert (att_dir / "b.pdf").read_bytes() == b"%PDF"

    def test_duplicate_names_last_write_wins(self, materializer, tmp_path):
        body = reserve(materializer, tmp_path)
        names = materializer.write_attachments(body, [("x.bin", b"1"), ("x.bin", b"2")])
        assert names == "x.bin;x.bin"
        assert (tmp_path / f"{body.name}.d" / "x.bin").read_bytes() == b"2"

    def test_path_components_stripped(self, materializer, tmp_path):
        body = reserve(materializer, tmp_path)
        names = materializer.write_attachments(body, [("../evil.txt", b"e")])
        assert names == "evil.txt"
        assert (tmp_path / f"{body.name}.d" / "evil.txt").exists()
        assert not (tmp_path / "evil.txt").exists()

    def test_attachment_dir_blocked(self, materializer, tmp_path):
        body = reserve(materializer, tmp_path)
        (tmp_path / f"{body.name}.d").write_text("not a dir")
        with pytest.raises(FilesystemError):
            materializer.write_attachments(body, [("a.txt", b"A")])


class TestSafeAttachmentName:
    def test_plain(self):
        assert safe_attachment_name("report.pdf", 0) == "report.pdf"

    def test_posix_path(self):
        assert safe_attachment_name("/etc/passwd", 0) == "passwd"

    def test_windows_path(self):
        assert safe_attachment_name("C:\\Users\\me\\notes.txt", 0) == "notes.txt"

    def test_empty_falls_back(self):
        assert safe_attachment_name("", 2) == "attachment-2"
        assert safe_attachment_name("..", 1) == "attachment-1"

    def test_separator_replaced(self):
        assert safe_attachment_name("a;b.txt", 0) == "a_b.txt"

    def test_separator_names_split_back(self, materializer, tmp_path):
        body = reserve(materializer, tmp_path)
        names = materializer.write_attachments(body, [("x;y.txt", b"1"), ("z.txt", b"2")])
        record = IndexRecord("m", "t", "20240315", "143045", "s", "subj", str(body), names)
        assert record.attachment_names == ["x_y.txt", "z.txt"]
        assert (tmp_path / f"{body.name}.d" / "x_y.txt").read_bytes() == b"1"
