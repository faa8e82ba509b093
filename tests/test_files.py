import io
import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from conftest import identity_for, make_file, make_folder
from dochub.config import settings
from dochub.core.exceptions import Forbidden, NotFound, ValidationFailed
from dochub.models.file import File
from dochub.services.files import FileService, IncomingFile, measure


def incoming(name, content=b"content", content_type="text/plain"):
    stream = io.BytesIO(content)
    return IncomingFile(filename=name, content_type=content_type, size_bytes=measure(stream), stream=stream)


def test_measure_rewinds_stream():
    stream = io.BytesIO(b"12345")
    stream.read(2)
    assert measure(stream) == 5
    assert stream.tell() == 0


async def test_upload_into_folder_inherits_folder_owner(db, storage, alice, admin):
    folder = await make_folder(db, "Reports", alice)

    [stored] = await FileService(db, storage).upload(identity_for(admin), [incoming("q1.pdf")], folder.id)

    assert stored.owner_id == alice.id
    assert stored.folder_id == folder.id
    assert stored.display_name == "q1.pdf"
    assert stored.size_bytes == len(b"content")
    assert storage.exists(stored.stored_name)


async def test_upload_defaults_content_type(db, storage, alice):
    [stored] = await FileService(db, storage).upload(
        identity_for(alice), [incoming("blob", content_type=None)]
    )
    assert stored.content_type == "application/octet-stream"
    assert stored.folder_id is None


async def test_upload_rejects_empty_batch(db, storage, alice):
    with pytest.raises(ValidationFailed):
        await FileService(db, storage).upload(identity_for(alice), [])


async def test_upload_checks_folder_before_storing(db, storage, alice, bob):
    folder = await make_folder(db, "Reports", alice)
    service = FileService(db, storage)

    with pytest.raises(Forbidden):
        await service.upload(identity_for(bob), [incoming("x.txt")], folder.id)
    with pytest.raises(NotFound):
        await service.upload(identity_for(alice), [incoming("x.txt")], 999)
    assert os.listdir(storage.root) == []


async def test_upload_rejects_oversized_file(db, storage, alice, monkeypatch):
    monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 0)
    with pytest.raises(ValidationFailed):
        await FileService(db, storage).upload(identity_for(alice), [incoming("big.bin")])
    assert os.listdir(storage.root) == []


async def test_failed_row_commit_removes_blob(db, storage, alice, monkeypatch):
    async def broken_commit():
        raise SQLAlchemyError("constraint violated")

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(SQLAlchemyError):
        await FileService(db, storage).upload(identity_for(alice), [incoming("x.txt")])
    assert os.listdir(storage.root) == []


async def test_delete_file_is_soft(db, storage, alice):
    file = await make_file(db, "old.txt", alice)
    service = FileService(db, storage)

    await service.delete_file(identity_for(alice), file.id)
    await db.commit()

    assert file.is_deleted
    assert file.deleted_at is not None
    with pytest.raises(NotFound):
        await service.get_file(identity_for(alice), file.id)
    hidden = await db.execute(select(File).where(File.id == file.id).execution_options(include_deleted=True))
    assert hidden.scalar_one().id == file.id


async def test_foreign_file_is_forbidden(db, storage, alice, bob):
    file = await make_file(db, "secret.txt", alice)
    service = FileService(db, storage)
    with pytest.raises(Forbidden):
        await service.get_file(identity_for(bob), file.id)
    with pytest.raises(Forbidden):
        await service.delete_file(identity_for(bob), file.id)
    assert not file.is_deleted


async def test_mark_opened_feeds_recent_list(db, storage, alice):
    service = FileService(db, storage)
    first = await make_file(db, "first.txt", alice, last_opened_at=datetime.utcnow() - timedelta(hours=1))
    second = await make_file(db, "second.txt", alice)

    opened = await service.mark_opened(identity_for(alice), second.id)
    await db.commit()

    assert opened.last_opened_at is not None
    recent = await service.recent_files(identity_for(alice))
    assert [f.id for f in recent] == [second.id, first.id]


async def test_download_requires_stored_content(db, storage, alice):
    file = await make_file(db, "gone.txt", alice)
    with pytest.raises(NotFound):
        await FileService(db, storage).get_for_download(identity_for(alice), file.id)

