import io
import os
import shutil

import pytest

from dochub.core.exceptions import StorageFailure
from dochub.services.storage import LocalStorageService, generate_stored_name


def test_stored_name_keeps_only_the_extension():
    name = generate_stored_name("../../etc/Quarterly Report.PDF")
    assert name.endswith(".pdf")
    assert "/" not in name
    assert "Quarterly" not in name
    assert generate_stored_name("notes") != generate_stored_name("notes")


def test_save_and_delete(storage):
    stored_name, path = storage.save(io.BytesIO(b"hello"), "hello.txt", "text/plain")

    assert path == f"/uploads/{stored_name}"
    assert storage.exists(stored_name)
    with open(storage.local_path(stored_name), "rb") as f:
        assert f.read() == b"hello"

    assert storage.delete(stored_name) is True
    assert not storage.exists(stored_name)
    # Deleting missing content is not an error
    assert storage.delete(stored_name) is True


def test_local_path_cannot_escape_root(storage):
    path = storage.local_path("../../outside.txt")
    assert os.path.dirname(path) == storage.root


def test_local_storage_has_no_presigned_urls(storage):
    assert storage.create_presigned_download_url("anything.txt") is None


def test_save_failure_raises_storage_failure(storage, monkeypatch):
    def broken_copy(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(shutil, "copyfileobj", broken_copy)
    with pytest.raises(StorageFailure):
        storage.save(io.BytesIO(b"data"), "data.bin")


def test_delete_failure_is_reported_not_raised(storage, monkeypatch):
    stored_name, _ = storage.save(io.BytesIO(b"data"), "data.bin")

    def broken_remove(path):
        raise OSError("permission denied")

    monkeypatch.setattr(os, "remove", broken_remove)
    assert storage.delete(stored_name) is False


def test_root_is_created(tmp_path):
    root = tmp_path / "nested" / "uploads"
    LocalStorageService(str(root))
    assert root.is_dir()
