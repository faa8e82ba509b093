from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from datetime import datetime
from dochub.db.session import get_db
from dochub.models.folder import Folder
from dochub.core.permissions import Identity
from dochub.api.v1.auth import get_current_identity
from dochub.services.filters import parse_container_id
from dochub.services.folder_tree import FolderTreeService
from pydantic import BaseModel

router = APIRouter()

class FolderCreate(BaseModel):
    name: str
    parent_id: int | None = None

class FolderUpdate(BaseModel):
    name: str | None = None
    parent_id: int | None = None

class FolderResponse(BaseModel):
    id: int
    name: str
    parent_id: int | None
    owner_id: int | None
    created_at: datetime

def folder_payload(folder: Folder) -> dict:
    return {
        "id": folder.id,
        "name": folder.name,
        "parent_id": folder.parent_id,
        "owner_id": folder.owner_id,
        "created_at": folder.created_at,
    }

@router.get("/", response_model=List[FolderResponse])
async def get_folders(
    parent_id: str | None = Query(None, alias="parentId"),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """List folders at the root or inside parentId"""
    folders = await FolderTreeService(db).list_folders(identity, parse_container_id(parent_id, "parentId"))
    return [folder_payload(folder) for folder in folders]

@router.post("/", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    folder_data: FolderCreate,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Create new folder"""
    folder = await FolderTreeService(db).create_folder(identity, folder_data.name, folder_data.parent_id)
    return folder_payload(folder)

@router.get("/{folder_id}", response_model=FolderResponse)
async def get_folder(
    folder_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    folder = await FolderTreeService(db).get_folder(identity, folder_id)
    return folder_payload(folder)

@router.put("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: int,
    folder_data: FolderUpdate,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Rename a folder and/or move it (parent_id: null moves it to the root)"""
    folder = await FolderTreeService(db).update_folder(
        identity,
        folder_id,
        name=folder_data.name,
        move="parent_id" in folder_data.model_fields_set,
        parent_id=folder_data.parent_id,
    )
    return folder_payload(folder)

@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    folder_id: int,
    recursive: bool = False,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Delete folder; refuses non-empty folders unless recursive=true"""
    await FolderTreeService(db).delete_folder(identity, folder_id, recursive=recursive)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.delete("/{folder_id}/force", status_code=status.HTTP_204_NO_CONTENT)
async def force_delete_folder(
    folder_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Delete folder with all its content (admin only)"""
    await FolderTreeService(db).force_delete(identity, folder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/{folder_id}/breadcrumb", response_model=List[FolderResponse])
async def get_breadcrumb(
    folder_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Path from the root folder down to this one"""
    trail = await FolderTreeService(db).breadcrumb(identity, folder_id)
    return [folder_payload(folder) for folder in trail]
