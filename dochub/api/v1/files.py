from fastapi import APIRouter, Depends, Form, Query, Request, Response, UploadFile, File as FastAPIFile, status
from fastapi.responses import FileResponse as FastAPIFileResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from datetime import datetime
from dochub.db.session import get_db
from dochub.models.file import File
from dochub.core.permissions import Identity
from dochub.api.v1.auth import get_current_identity
from dochub.services.files import FileService, IncomingFile, measure
from dochub.services.filters import parse_container_id
from dochub.services.storage import get_storage
from pydantic import BaseModel

router = APIRouter()

class FileResponse(BaseModel):
    id: int
    filename: str
    content_type: str
    size_bytes: int
    folder_id: int | None
    uploaded_at: datetime
    last_opened_at: datetime | None
    url: str

def file_payload(request: Request, file: File) -> dict:
    # Clients get the authenticated download route, never the stored name
    return {
        "id": file.id,
        "filename": file.display_name,
        "content_type": file.content_type,
        "size_bytes": file.size_bytes,
        "folder_id": file.folder_id,
        "uploaded_at": file.uploaded_at,
        "last_opened_at": file.last_opened_at,
        "url": str(request.url_for("download_file", file_id=file.id)),
    }

@router.post("/upload", response_model=List[FileResponse])
async def upload_files(
    request: Request,
    files: List[UploadFile] = FastAPIFile(...),
    folder_id: int | None = Form(None, alias="folderId"),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_storage)
):
    """Upload one or more files to the root or into a folder"""
    uploads = [
        IncomingFile(
            filename=upload.filename,
            content_type=upload.content_type,
            size_bytes=measure(upload.file),
            stream=upload.file,
        )
        for upload in files
    ]
    stored = await FileService(db, storage).upload(identity, uploads, folder_id)
    return [file_payload(request, file) for file in stored]

@router.get("/", response_model=List[FileResponse])
async def get_files(
    request: Request,
    folder_id: str | None = Query(None, alias="folderId"),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_storage)
):
    """List files at the root or inside folderId, newest first"""
    files = await FileService(db, storage).list_files(identity, parse_container_id(folder_id))
    return [file_payload(request, file) for file in files]

@router.get("/recent", response_model=List[FileResponse])
async def get_recent_files(
    request: Request,
    limit: int | None = None,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_storage)
):
    """Recently opened files"""
    files = await FileService(db, storage).recent_files(identity, limit)
    return [file_payload(request, file) for file in files]

@router.patch("/open/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def mark_opened(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_storage)
):
    await FileService(db, storage).mark_opened(identity, file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/download/{file_id}", name="download_file")
async def download_file(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_storage)
):
    """Stream the file content, or redirect to a presigned URL for object storage"""
    file = await FileService(db, storage).get_for_download(identity, file_id)

    path = storage.local_path(file.stored_name)
    if path is not None:
        return FastAPIFileResponse(path=path, filename=file.display_name, media_type=file.content_type)

    return RedirectResponse(storage.create_presigned_download_url(file.stored_name, filename=file.display_name))

@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    storage=Depends(get_storage)
):
    """Delete file (soft delete)"""
    await FileService(db, storage).delete_file(identity, file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
