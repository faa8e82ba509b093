"""Ownership- and role-scoped listing predicates for folders and files.

A listing is described by one of three filter variants:

* ``RootLevel``: resources that sit at the root (no parent folder).
* ``InContainer``: resources directly inside one folder.
* ``RecentlyOpened``: files with a ``last_opened_at``, newest first.

Every variant carries an ``owner_id``. ``None`` means the listing is not scoped
to an owner, which only ``build_filter`` hands out to admins.

Statements built here run through the visibility-filtered session, so the
soft-delete predicate is ANDed on top of whatever the variant adds.
"""
from dataclasses import dataclass
from typing import Union
from sqlalchemy import Select
from dochub.config import settings
from dochub.core.exceptions import ValidationFailed
from dochub.core.permissions import Identity
from dochub.models.file import File
from dochub.models.folder import Folder

MAX_RECENT_LIMIT = 100


def container_column(model):
    """Column pointing at the enclosing folder: ``parent_id`` or ``folder_id``."""
    if model is Folder:
        return Folder.parent_id
    if model is File:
        return File.folder_id
    raise TypeError(f"{model!r} is not a listable model")


def _owner_criteria(model, owner_id):
    return [] if owner_id is None else [model.owner_id == owner_id]


def _default_order(model):
    if model is Folder:
        return [Folder.name.asc(), Folder.id.asc()]
    return [File.uploaded_at.desc(), File.id.desc()]


@dataclass(frozen=True)
class RootLevel:
    owner_id: int | None = None

    def criteria(self, model):
        return [container_column(model).is_(None), *_owner_criteria(model, self.owner_id)]

    def order_by(self, model):
        return _default_order(model)


@dataclass(frozen=True)
class InContainer:
    container_id: int
    owner_id: int | None = None

    def criteria(self, model):
        return [container_column(model) == self.container_id, *_owner_criteria(model, self.owner_id)]

    def order_by(self, model):
        return _default_order(model)


@dataclass(frozen=True)
class RecentlyOpened:
    owner_id: int | None = None
    limit: int = 8

    def criteria(self, model):
        if model is not File:
            raise TypeError("Only files track when they were opened")
        return [File.last_opened_at.is_not(None), *_owner_criteria(model, self.owner_id)]

    def order_by(self, model):
        return [File.last_opened_at.desc(), File.id.desc()]


ListingFilter = Union[RootLevel, InContainer, RecentlyOpened]


def _scope(identity: Identity) -> int | None:
    return None if identity.is_admin else identity.user_id


def build_filter(identity: Identity, parent_id: int | None = None) -> ListingFilter:
    owner_id = _scope(identity)
    if parent_id is None:
        return RootLevel(owner_id=owner_id)
    return InContainer(container_id=parent_id, owner_id=owner_id)


def build_recent_filter(identity: Identity, limit: int | None = None) -> RecentlyOpened:
    if limit is None:
        limit = settings.RECENT_FILES_LIMIT
    if limit < 1 or limit > MAX_RECENT_LIMIT:
        raise ValidationFailed(f"limit must be between 1 and {MAX_RECENT_LIMIT}")
    return RecentlyOpened(owner_id=_scope(identity), limit=limit)


def apply_filter(stmt: Select, listing_filter: ListingFilter, model) -> Select:
    stmt = stmt.where(*listing_filter.criteria(model)).order_by(*listing_filter.order_by(model))
    if isinstance(listing_filter, RecentlyOpened):
        stmt = stmt.limit(listing_filter.limit)
    return stmt


def parse_container_id(raw: str | None, field: str = "folderId") -> int | None:
    """Query-string container id: empty or "null" means the root level."""
    if raw is None or raw == "" or raw.lower() == "null":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailed(f"Invalid {field} format")
