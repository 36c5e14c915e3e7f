"""Tests for the SQLite message index."""

import sqlite3

import pytest

from mailwatch.errors import DuplicateKeyError, StorageError
from mailwatch.index import INDEX_DB, IndexRecord, MailIndex, get_index_path


def make_record(message_id="msg-1", thread_id="thr-1", date="20240315", time="143045", **kwargs):
    return IndexRecord(
        message_id=message_id,
        thread_id=thread_id,
        date=date,
        time=time,
        sender=kwargs.get("sender", "John Doe <john.doe@example.co>"),
        subject=kwargs.get("subject", "Hello"),
        filename=kwargs.get("filename", "/tmp/base/john.doe@example.co/20240315/20240315-143045.000"),
        attachments=kwargs.get("attachments", ""),
    )


@pytest.fixture
def index(tmp_path):
    with MailIndex(get_index_path(tmp_path)) as idx:
        yield idx


class TestSchema:
    def test_index_path(self, tmp_path):
        assert get_index_path(tmp_path) == tmp_path / INDEX_DB
        assert INDEX_DB == "index.sqlite.db"

    def test_creates_table_and_thread_index(self, index):
        assert index.path.exists()
        names = {
            (row["type"], row["name"])
            for row in index.conn.execute("SELECT type, name FROM sqlite_master")
        }
        assert ("table", "mailidx") in names
        assert ("index", "threadidx") in names

    def test_columns(self, index):
        cols = [row["name"] for row in index.conn.execute("PRAGMA table_info(mailidx)")]
        assert cols == [
            "messageid", "threadid", "date", "time",
            "sender", "subject", "filename", "attachments",
        ]

    def test_messageid_is_primary_key(self, index):
        pk = [row["name"] for row in index.conn.execute("PRAGMA table_info(mailidx)") if row["pk"]]
        assert pk == ["messageid"]

    def test_existing_db_opened_as_is(self, tmp_path):
        path = tmp_path / INDEX_DB
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE other (x TEXT)")
        conn.commit()
        conn.close()

        with MailIndex(path) as idx:
            tables = [row["name"] for row in idx.conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )]
            assert tables == ["other"]
            with pytest.raises(StorageError):
                idx.exists("msg-1")

    def test_not_a_database(self, tmp_path):
        path = tmp_path / INDEX_DB
        path.write_bytes(b"not a database " * 100)
        with MailIndex(path) as idx:
            with pytest.raises(StorageError):
                idx.exists("msg-1")

    def test_not_connected(self, tmp_path):
        idx = MailIndex(tmp_path / INDEX_DB)
        with pytest.raises(RuntimeError, match="Not connected"):
            idx.exists("msg-1")


class TestExistsInsert:
    def test_missing_is_false(self, index):
        assert index.exists("msg-1") is False

    def test_insert_then_exists(self, index):
        index.insert(make_record())
        assert index.exists("msg-1") is True
        assert index.exists("msg-2") is False

    def test_duplicate_insert(self, index):
        index.insert(make_record())
        with pytest.raises(DuplicateKeyError) as exc_info:
            index.insert(make_record(subject="Other"))
        assert exc_info.value.message_id == "msg-1"
        assert isinstance(exc_info.value, StorageError)
        # Original record untouched
        assert index.get("msg-1").subject == "Hello"
        assert index.count() == 1

    def test_persists_across_reopen(self, tmp_path):
        path = get_index_path(tmp_path)
        with MailIndex(path) as idx:
            idx.insert(make_record())
        with MailIndex(path) as idx:
            assert idx.exists("msg-1")
            assert idx.count() == 1


class TestLookups:
    def test_get(self, index):
        index.insert(make_record(attachments="a.txt;b.pdf"))
        rec = index.get("msg-1")
        assert rec == make_record(attachments="a.txt;b.pdf")
        assert rec.attachment_names == ["a.txt", "b.pdf"]

    def test_get_missing(self, index):
        assert index.get("nope") is None

    def test_no_attachments(self, index):
        index.insert(make_record())
        assert index.get("msg-1").attachment_names == []

    def test_iter_thread(self, index):
        index.insert(make_record("m2", "t1", "20240316", "090000"))
        index.insert(make_record("m1", "t1", "20240315", "090000"))
        index.insert(make_record("m3", "t2", "20240314", "090000"))
        assert [r.message_id for r in index.iter_thread("t1")] == ["m1", "m2"]
        assert [r.message_id for r in index.iter_thread("t3")] == []

    def test_iter_records_newest_first(self, index):
        index.insert(make_record("m1", date="20240315", time="090000"))
        index.insert(make_record("m2", date="20240315", time="100000"))
        index.insert(make_record("m3", date="20240101", time="230000"))
        assert [r.message_id for r in index.iter_records()] == ["m2", "m1", "m3"]
        assert [r.message_id for r in index.iter_records(limit=2)] == ["m2", "m1"]

    def test_count(self, index):
        assert index.count() == 0
        index.insert(make_record("m1"))
        index.insert(make_record("m2"))
        assert index.count() == 2


class TestReadOnly:
    def test_missing_file_is_empty_and_not_created(self, tmp_path):
        path = get_index_path(tmp_path / "fresh")
        with MailIndex(path, readonly=True) as index:
            assert index.count() == 0
            assert not index.exists("msg-1")
        assert not path.parent.exists()

    def test_reads_existing(self, tmp_path):
        path = get_index_path(tmp_path)
        with MailIndex(path) as index:
            index.insert(make_record())
        with MailIndex(path, readonly=True) as index:
            assert index.exists("msg-1")
            with pytest.raises(StorageError):
                index.insert(make_record("msg-2"))
        with MailIndex(path) as index:
            assert index.count() == 1
