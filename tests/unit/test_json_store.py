import errno
import json
import logging
import os
import stat

import pytest

from bookingstore.core.codec import encode
from bookingstore.core.errors import IOFailure
from bookingstore.core.models import Document
from bookingstore.core.store import JSONStore


def _doc(*names):
    return Document(items=[{"id": n, "name": n} for n in names])


def test_ensure_exists_is_idempotent(tmp_path):
    p = tmp_path / "nested" / "data" / "cars.json"
    store = JSONStore(p)

    for _ in range(5):
        store.ensure_exists()

    assert p.read_bytes() == encode(Document())
    assert json.loads(p.read_text()) == {"items": [], "lastUpdated": None}
    # no temp files left behind
    assert os.listdir(p.parent) == ["cars.json"]


def test_ensure_exists_keeps_existing_document(tmp_path):
    p = tmp_path / "cars.json"
    store = JSONStore(p)
    store.write(_doc("a"))
    before = p.read_bytes()

    store.ensure_exists()

    assert p.read_bytes() == before


def test_load_bootstraps_missing_file(tmp_path):
    p = tmp_path / "cruises.json"
    doc = JSONStore(p).load()
    assert doc == Document()
    assert p.exists()


def test_write_stamps_last_updated_and_roundtrips(tmp_path):
    store = JSONStore(tmp_path / "cars.json")
    written = store.write(_doc("a", "b"))

    assert written.lastUpdated is not None
    assert store.load() == written


def test_failed_rename_leaves_previous_document(tmp_path, monkeypatch):
    p = tmp_path / "cars.json"
    store = JSONStore(p)
    store.write(_doc("a"))
    before = p.read_bytes()

    def disk_full(src, dst):
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(os, "replace", disk_full)

    with pytest.raises(IOFailure) as exc:
        store.write(_doc("a", "b"))
    monkeypatch.undo()

    assert exc.value.operation == "write"
    assert isinstance(exc.value.__cause__, OSError)
    assert p.read_bytes() == before
    assert [i["id"] for i in store.load().items] == ["a"]
    assert os.listdir(tmp_path) == ["cars.json"]


def test_failed_fsync_leaves_previous_document(tmp_path, monkeypatch):
    p = tmp_path / "cars.json"
    store = JSONStore(p)
    store.write(_doc("a"))
    before = p.read_bytes()

    def io_error(fd):
        raise OSError(errno.EIO, "Input/output error")

    monkeypatch.setattr(os, "fsync", io_error)

    with pytest.raises(IOFailure):
        store.write(_doc("b"))
    monkeypatch.undo()

    assert p.read_bytes() == before
    assert os.listdir(tmp_path) == ["cars.json"]


def test_rename_retried_on_permission_error(tmp_path, monkeypatch):
    p = tmp_path / "cars.json"
    store = JSONStore(p, retry_attempts=3)
    real_replace = os.replace
    calls = []

    def flaky(src, dst):
        calls.append(src)
        if len(calls) == 1:
            raise PermissionError(errno.EACCES, "file in use")
        real_replace(src, dst)

    monkeypatch.setattr(os, "replace", flaky)
    store.write(_doc("a"))
    monkeypatch.undo()

    assert len(calls) == 2
    assert [i["id"] for i in store.load().items] == ["a"]


def test_corrupt_file_is_quarantined(tmp_path, caplog):
    p = tmp_path / "cars.json"
    p.write_text("{ this is not json")
    store = JSONStore(p, quarantine_corrupt=True)

    with caplog.at_level(logging.WARNING, logger="bookingstore.store"):
        doc = store.load()

    assert doc == Document()
    assert store.corrupt_loads == 1
    assert "corrupt document" in caplog.text
    quarantined = [f for f in os.listdir(tmp_path) if f.startswith("cars.json.corrupt-")]
    assert len(quarantined) == 1
    assert (tmp_path / quarantined[0]).read_text() == "{ this is not json"
    # fresh empty document in place, next load is clean
    assert p.read_bytes() == encode(Document())
    store.load()
    assert store.corrupt_loads == 1


def test_corrupt_file_left_alone_without_quarantine(tmp_path):
    p = tmp_path / "cars.json"
    p.write_bytes(b"\x00\x01garbage")
    store = JSONStore(p, quarantine_corrupt=False)

    assert store.load() == Document()
    assert store.load() == Document()
    assert store.corrupt_loads == 2
    assert p.read_bytes() == b"\x00\x01garbage"


def test_unreadable_path_is_io_failure(tmp_path):
    # a directory where the document should be
    p = tmp_path / "cars.json"
    p.mkdir()

    with pytest.raises(IOFailure) as exc:
        JSONStore(p).load()
    assert exc.value.operation == "load"


def test_parent_not_a_directory_is_io_failure(tmp_path):
    blocker = tmp_path / "data"
    blocker.write_text("i am a file")

    store = JSONStore(blocker / "cars.json")
    with pytest.raises(IOFailure):
        store.ensure_exists()
    with pytest.raises(IOFailure):
        store.write(_doc("a"))


@pytest.mark.skipif(os.name != "posix", reason="directory fsync is POSIX only")
def test_write_flushes_the_directory_entry(tmp_path, monkeypatch):
    store = JSONStore(tmp_path / "cars.json")
    real_fsync = os.fsync
    synced = []

    def recording_fsync(fd):
        synced.append(stat.S_ISDIR(os.fstat(fd).st_mode))
        real_fsync(fd)

    monkeypatch.setattr(os, "fsync", recording_fsync)
    store.write(_doc("a"))
    monkeypatch.undo()

    # temp file first, then the directory holding the renamed entry
    assert synced == [False, True]
