import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dochub.config import settings
from dochub.core.security import get_password_hash
from dochub.models.user import ADMIN_ROLE, USER_ROLE, Role, User

logger = logging.getLogger(__name__)

DEFAULT_ROLES = {
    ADMIN_ROLE: "Full access to all resources",
    USER_ROLE: "Limited access to own resources only",
}

async def seed_roles(db: AsyncSession) -> dict[str, Role]:
    result = await db.execute(select(Role))
    roles = {role.name: role for role in result.scalars().all()}
    for name, description in DEFAULT_ROLES.items():
        if name not in roles:
            roles[name] = Role(name=name, description=description)
            db.add(roles[name])
    await db.flush()
    return roles

async def seed_default_users(db: AsyncSession) -> None:
    """Create the admin and user accounts on an empty database"""
    result = await db.execute(select(User.id).limit(1))
    if result.first() is not None:
        return

    roles = await seed_roles(db)
    db.add_all([
        User(
            username="admin",
            email="admin@dochub.com",
            first_name="Admin",
            last_name="User",
            password_hash=get_password_hash(settings.SEED_ADMIN_PASSWORD),
            roles=[roles[ADMIN_ROLE]],
        ),
        User(
            username="user",
            email="user@dochub.com",
            first_name="Default",
            last_name="User",
            password_hash=get_password_hash(settings.SEED_USER_PASSWORD),
            roles=[roles[USER_ROLE]],
        ),
    ])
    await db.flush()
    logger.info("Default users created: admin, user")
