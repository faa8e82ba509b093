from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List
import logging
from dochub.db.session import get_db
from dochub.models.user import User
from dochub.core.exceptions import NotFound, ValidationFailed
from dochub.core.permissions import Identity, ensure_admin
from dochub.core.security import get_password_hash, verify_password
from dochub.api.v1.auth import get_current_identity, get_current_user, get_or_create_role, user_payload
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter()

class UserProfile(BaseModel):
    id: int
    username: str
    email: str
    first_name: str | None
    last_name: str | None
    is_active: bool
    created_at: str | None
    last_login_at: str | None
    roles: List[str]

class PasswordChange(BaseModel):
    current_password: str
    new_password: str

async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user

@router.get("/me", response_model=UserProfile)
async def get_my_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return user_payload(current_user)

@router.put("/me/password")
async def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change the caller's password"""
    if not verify_password(data.current_password, current_user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    if not 6 <= len(data.new_password) <= 72:
        raise ValidationFailed("Password must be between 6 and 72 characters")

    current_user.password_hash = get_password_hash(data.new_password)
    await db.flush()

    logger.info(f"Password changed for user {current_user.id}")
    return {"message": "Password changed successfully"}

@router.get("/", response_model=List[UserProfile])
async def list_users(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """List all users (admin only)"""
    ensure_admin(identity)
    result = await db.execute(select(User).order_by(User.id))
    return [user_payload(user) for user in result.scalars().all()]

@router.put("/{user_id}/roles/{role_name}", response_model=UserProfile)
async def assign_role(
    user_id: int,
    role_name: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Grant a role to a user (admin only)"""
    ensure_admin(identity)
    user = await _get_user(db, user_id)

    if role_name.lower() not in {name.lower() for name in user.role_names}:
        role = await get_or_create_role(db, role_name)
        user.roles.append(role)
        await db.flush()
        logger.info(f"Role {role.name} assigned to user {user_id} by {identity.user_id}")

    return user_payload(user)

@router.delete("/{user_id}/roles/{role_name}", response_model=UserProfile)
async def remove_role(
    user_id: int,
    role_name: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Revoke a role from a user (admin only)"""
    ensure_admin(identity)
    user = await _get_user(db, user_id)

    role = next((r for r in user.roles if r.name.lower() == role_name.lower()), None)
    if role is None:
        raise NotFound(f"User does not have the {role_name} role")

    user.roles.remove(role)
    await db.flush()
    logger.info(f"Role {role.name} removed from user {user_id} by {identity.user_id}")
    return user_payload(user)
