"""Folder tree operations: creation, listing, moves, cascading deletes and breadcrumbs.

Authorization on a cascading delete is checked once, on the folder the caller
names. That is safe because a folder or file created inside a folder always
inherits that folder's owner, and moves are only allowed between folders of
the same owner, so every subtree has a single owner.

Tree walks are iterative. They keep a visited set so a corrupted ``parent_id``
chain cannot loop, and they stop at ``MAX_FOLDER_DEPTH`` levels.
"""
from dataclasses import dataclass
from datetime import datetime
import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dochub.config import settings
from dochub.core.exceptions import NotEmpty, NotFound, ValidationFailed
from dochub.core.permissions import Identity, ensure_access, ensure_admin
from dochub.models.file import File
from dochub.models.folder import Folder
from dochub.services.filters import apply_filter, build_filter

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


@dataclass
class DeleteSummary:
    folders: int = 0
    files: int = 0


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Folder name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationFailed(f"Folder name must be at most {MAX_NAME_LENGTH} characters")
    return name


class FolderTreeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, folder_id: int) -> Folder | None:
        result = await self.db.execute(select(Folder).where(Folder.id == folder_id))
        return result.scalar_one_or_none()

    async def get_folder(self, identity: Identity, folder_id: int) -> Folder:
        folder = await self._load(folder_id)
        if folder is None:
            raise NotFound("Folder not found")
        ensure_access(identity, folder)
        return folder

    async def list_folders(self, identity: Identity, parent_id: int | None = None) -> list[Folder]:
        stmt = apply_filter(select(Folder), build_filter(identity, parent_id), Folder)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_folder(self, identity: Identity, name: str, parent_id: int | None = None) -> Folder:
        name = _clean_name(name)
        owner_id = identity.user_id

        if parent_id is not None:
            parent = await self._load(parent_id)
            if parent is None:
                raise NotFound("Parent folder not found")
            ensure_access(identity, parent)
            # A child always belongs to whoever owns its parent
            owner_id = parent.owner_id

        folder = Folder(name=name, parent_id=parent_id, owner_id=owner_id)
        self.db.add(folder)
        await self.db.flush()

        logger.info(f"Folder {folder.id} created by user {identity.user_id} under {parent_id}")
        return folder

    async def update_folder(
        self,
        identity: Identity,
        folder_id: int,
        name: str | None = None,
        move: bool = False,
        parent_id: int | None = None,
    ) -> Folder:
        """Rename and/or move a folder. ``move`` distinguishes "move to root" from "stay"."""
        folder = await self.get_folder(identity, folder_id)

        if name is not None:
            folder.name = _clean_name(name)

        if move and parent_id != folder.parent_id:
            if parent_id is not None:
                parent = await self._load(parent_id)
                if parent is None:
                    raise NotFound("Parent folder not found")
                ensure_access(identity, parent)
                if parent.owner_id != folder.owner_id:
                    raise ValidationFailed("Cannot move a folder into a folder with a different owner")
                if await self.is_ancestor_or_self(folder.id, parent):
                    raise ValidationFailed("Cannot move a folder into itself or one of its descendants")
            folder.parent_id = parent_id

        await self.db.flush()
        return folder

    async def is_ancestor_or_self(self, candidate_id: int, folder: Folder) -> bool:
        """True if ``candidate_id`` is ``folder`` or lies on its path to the root.

        A cycle or an over-deep chain above ``folder`` raises ``ValidationFailed``.
        """
        seen = set()
        current = folder
        while current is not None:
            if current.id == candidate_id:
                return True
            if current.id in seen:
                raise ValidationFailed(f"Folder {current.id} is part of a parent cycle")
            if len(seen) >= settings.MAX_FOLDER_DEPTH:
                raise ValidationFailed(
                    f"Folder tree exceeds the maximum depth of {settings.MAX_FOLDER_DEPTH}"
                )
            seen.add(current.id)
            if current.parent_id is None:
                return False
            current = await self._load(current.parent_id)
        return False

    async def has_content(self, folder_id: int) -> bool:
        child = await self.db.execute(select(Folder.id).where(Folder.parent_id == folder_id).limit(1))
        if child.scalar_one_or_none() is not None:
            return True
        file = await self.db.execute(select(File.id).where(File.folder_id == folder_id).limit(1))
        return file.scalar_one_or_none() is not None

    async def collect_subtree(self, root: Folder) -> list[list[Folder]]:
        """Visible folders of the subtree rooted at ``root``, grouped by level, root level first."""
        levels = [[root]]
        seen = {root.id}
        frontier = [root.id]

        while frontier:
            result = await self.db.execute(
                select(Folder).where(Folder.parent_id.in_(frontier)).order_by(Folder.id)
            )
            children = [child for child in result.scalars().all() if child.id not in seen]
            if not children:
                break
            if len(levels) >= settings.MAX_FOLDER_DEPTH:
                raise ValidationFailed(
                    f"Folder tree exceeds the maximum depth of {settings.MAX_FOLDER_DEPTH}"
                )
            seen.update(child.id for child in children)
            levels.append(children)
            frontier = [child.id for child in children]

        return levels

    async def soft_delete_recursive(self, root: Folder) -> DeleteSummary:
        """Flag ``root``, its descendant folders and all their files as deleted.

        Levels are processed deepest first and, inside a level, files before
        folders, so a child is never left visible under a hidden parent. The
        changes are flushed together and commit with the surrounding transaction.
        """
        levels = await self.collect_subtree(root)
        now = datetime.utcnow()
        summary = DeleteSummary()

        for level in reversed(levels):
            result = await self.db.execute(
                select(File).where(File.folder_id.in_([folder.id for folder in level]))
            )
            for file in result.scalars().all():
                file.mark_deleted(now)
                summary.files += 1
            for folder in level:
                folder.mark_deleted(now)
                summary.folders += 1

        await self.db.flush()
        return summary

    async def delete_folder(self, identity: Identity, folder_id: int, recursive: bool = False) -> DeleteSummary:
        folder = await self.get_folder(identity, folder_id)

        if not recursive and await self.has_content(folder.id):
            raise NotEmpty("Folder is not empty; delete its contents first or use the recursive delete")

        summary = await self.soft_delete_recursive(folder)
        logger.info(
            f"Folder {folder.id} deleted by user {identity.user_id}: "
            f"{summary.folders} folders, {summary.files} files"
        )
        return summary

    async def force_delete(self, identity: Identity, folder_id: int) -> DeleteSummary:
        """Admin-only cascading soft delete that ignores the non-empty guard."""
        ensure_admin(identity)
        folder = await self._load(folder_id)
        if folder is None:
            raise NotFound("Folder not found")

        summary = await self.soft_delete_recursive(folder)
        logger.info(
            f"Folder {folder.id} force deleted by admin {identity.user_id}: "
            f"{summary.folders} folders, {summary.files} files"
        )
        return summary

    async def breadcrumb(self, identity: Identity, folder_id: int) -> list[Folder]:
        """Path from the root down to ``folder_id``; every ancestor must be accessible."""
        folder = await self.get_folder(identity, folder_id)
        trail = [folder]
        seen = {folder.id}

        while folder.parent_id is not None:
            if folder.parent_id in seen:
                logger.warning(f"Folder cycle detected at {folder.id} while resolving breadcrumb of {folder_id}")
                break
            if len(trail) >= settings.MAX_FOLDER_DEPTH:
                raise ValidationFailed(
                    f"Folder tree exceeds the maximum depth of {settings.MAX_FOLDER_DEPTH}"
                )
            parent = await self._load(folder.parent_id)
            if parent is None:
                break
            ensure_access(identity, parent)
            seen.add(parent.id)
            trail.append(parent)
            folder = parent

        trail.reverse()
        return trail
