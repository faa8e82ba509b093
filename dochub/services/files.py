from dataclasses import dataclass
from datetime import datetime
import logging
from typing import BinaryIO
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from dochub.config import settings
from dochub.core.exceptions import NotFound, ValidationFailed
from dochub.core.permissions import Identity, ensure_access
from dochub.models.file import File
from dochub.models.folder import Folder
from dochub.services.filters import apply_filter, build_filter, build_recent_filter

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

@dataclass
class IncomingFile:
    """One part of a multipart upload."""

    filename: str
    content_type: str | None
    size_bytes: int
    stream: BinaryIO

def measure(stream: BinaryIO) -> int:
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size

class FileService:
    def __init__(self, db: AsyncSession, storage):
        self.db = db
        self.storage = storage

    async def _load(self, file_id: int) -> File | None:
        result = await self.db.execute(select(File).where(File.id == file_id))
        return result.scalar_one_or_none()

    async def get_file(self, identity: Identity, file_id: int) -> File:
        file = await self._load(file_id)
        if file is None:
            raise NotFound("File not found")
        ensure_access(identity, file)
        return file

    async def upload(self, identity: Identity, uploads: list[IncomingFile], folder_id: int | None = None) -> list[File]:
        """Store each upload and commit its row on its own.

        Files stored before a failure stay stored; the failing one is rolled
        back and its content removed from the blob store.
        """
        if not uploads:
            raise ValidationFailed("No files provided")

        owner_id = identity.user_id
        if folder_id is not None:
            result = await self.db.execute(select(Folder).where(Folder.id == folder_id))
            folder = result.scalar_one_or_none()
            if folder is None:
                raise NotFound("Folder not found")
            ensure_access(identity, folder)
            owner_id = folder.owner_id

        max_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024
        for upload in uploads:
            if not upload.filename:
                raise ValidationFailed("Every uploaded file needs a filename")
            if upload.size_bytes > max_size:
                raise ValidationFailed(f"{upload.filename} exceeds the {settings.MAX_FILE_SIZE_MB}MB limit")

        stored_files = []
        for upload in uploads:
            stored_name, _ = self.storage.save(upload.stream, upload.filename, upload.content_type)

            db_file = File(
                display_name=upload.filename,
                stored_name=stored_name,
                content_type=upload.content_type or DEFAULT_CONTENT_TYPE,
                size_bytes=upload.size_bytes,
                folder_id=folder_id,
                owner_id=owner_id,
                uploaded_at=datetime.utcnow(),
            )
            self.db.add(db_file)
            try:
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                if not self.storage.delete(stored_name):
                    logger.error(f"Orphaned blob {stored_name} left after failed upload")
                raise

            logger.info(f"File {db_file.id} uploaded by user {identity.user_id} into folder {folder_id}")
            stored_files.append(db_file)

        return stored_files

    async def list_files(self, identity: Identity, folder_id: int | None = None) -> list[File]:
        stmt = apply_filter(select(File), build_filter(identity, folder_id), File)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def recent_files(self, identity: Identity, limit: int | None = None) -> list[File]:
        stmt = apply_filter(select(File), build_recent_filter(identity, limit), File)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_opened(self, identity: Identity, file_id: int) -> File:
        file = await self.get_file(identity, file_id)
        file.last_opened_at = datetime.utcnow()
        await self.db.flush()
        return file

    async def get_for_download(self, identity: Identity, file_id: int) -> File:
        file = await self.get_file(identity, file_id)
        if not self.storage.exists(file.stored_name):
            logger.error(f"Content of file {file.id} is missing from storage")
            raise NotFound("File content not found")
        return file

    async def delete_file(self, identity: Identity, file_id: int) -> File:
        file = await self.get_file(identity, file_id)
        # Soft delete; stored content is kept
        file.mark_deleted()
        await self.db.flush()
        logger.info(f"File {file.id} deleted by user {identity.user_id}")
        return file
