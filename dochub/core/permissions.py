from dataclasses import dataclass, field
import logging
from dochub.config import settings
from dochub.core.exceptions import Forbidden
from dochub.models.user import ADMIN_ROLE

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Identity:
    """Caller of a request as resolved from its access token."""

    user_id: int
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

def can_access(identity: Identity, owner_id: int | None) -> bool:
    """Admins reach everything; everybody else only what they own.

    Rows without an owner are reserved to admins unless the deployment
    sets ALLOW_UNOWNED_ACCESS.
    """
    if identity.is_admin:
        return True
    if owner_id is None:
        return settings.ALLOW_UNOWNED_ACCESS
    return identity.user_id == owner_id

def ensure_access(identity: Identity, resource) -> None:
    if not can_access(identity, resource.owner_id):
        logger.warning(
            f"Access denied: user {identity.user_id} on {type(resource).__name__.lower()} {resource.id}"
        )
        raise Forbidden()

def ensure_admin(identity: Identity) -> None:
    if not identity.is_admin:
        raise Forbidden("Administrator role required")
