from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from datetime import datetime
import logging
from dochub.config import settings
from dochub.db.session import get_db
from dochub.models.user import User, Role, USER_ROLE
from dochub.core.exceptions import Conflict, Unauthenticated, ValidationFailed
from dochub.core.limiter import limiter, CREDENTIALS_RATE_LIMIT
from dochub.core.permissions import Identity
from dochub.core.security import (
    verify_password, get_password_hash, create_access_token, create_refresh_token,
    decode_token, access_token_expires_at, REFRESH_TOKEN,
)
from pydantic import BaseModel, EmailStr, Field

logger = logging.getLogger(__name__)

router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX.lstrip('/')}/auth/login")

class UserRegister(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str
    confirm_password: str
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)

class RefreshRequest(BaseModel):
    refresh_token: str

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: dict

def user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
        "roles": user.role_names,
    }

def issue_tokens(user: User) -> dict:
    claims = {
        "sub": str(user.id),
        "username": user.username,
        "email": user.email,
        "roles": user.role_names,
    }
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token({"sub": str(user.id)}),
        "token_type": "bearer",
        "expires_at": access_token_expires_at(),
        "user": user_payload(user),
    }

async def username_exists(db: AsyncSession, username: str) -> bool:
    result = await db.execute(select(User.id).where(func.lower(User.username) == username.lower()))
    return result.first() is not None

async def email_exists(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(func.lower(User.email) == email.lower()))
    return result.first() is not None

async def get_or_create_role(db: AsyncSession, name: str) -> Role:
    result = await db.execute(select(Role).where(func.lower(Role.name) == name.lower()))
    role = result.scalar_one_or_none()
    if role is None:
        role = Role(name=name)
        db.add(role)
        await db.flush()
    return role

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(CREDENTIALS_RATE_LIMIT)
async def register(request: Request, user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """Register new user with the default User role"""
    username = user_data.username.strip()
    if not username:
        raise ValidationFailed("Username is required")

    # Validate password
    if len(user_data.password) < 6:
        raise ValidationFailed("Password must be at least 6 characters")
    if len(user_data.password) > 72:
        raise ValidationFailed("Password must be less than 72 characters")
    if user_data.password != user_data.confirm_password:
        raise ValidationFailed("Passwords do not match")

    # Check if user exists
    if await username_exists(db, username):
        raise Conflict("Username already exists")
    if await email_exists(db, user_data.email):
        raise Conflict("Email already exists")

    user = User(
        username=username,
        email=user_data.email,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        password_hash=get_password_hash(user_data.password),
        is_active=True,
    )
    user.roles = [await get_or_create_role(db, USER_ROLE)]

    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration
        raise Conflict("Username or email already exists")

    logger.info(f"User registered: {user.username} ({user.id})")
    return issue_tokens(user)

@router.post("/login", response_model=TokenResponse)
@limiter.limit(CREDENTIALS_RATE_LIMIT)
async def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)):
    """Login user with username/password"""

    result = await db.execute(select(User).where(User.username == form_data.username, User.is_active.is_(True)))
    user = result.scalar_one_or_none()

    if not user or not verify_password(form_data.password, user.password_hash):
        raise Unauthenticated("Invalid username or password")

    # Update last login
    user.last_login_at = datetime.utcnow()
    await db.flush()

    return issue_tokens(user)

@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new token pair"""
    payload = decode_token(data.refresh_token, REFRESH_TOKEN)
    if payload is None or payload.get("sub") is None:
        raise Unauthenticated("Invalid refresh token")

    result = await db.execute(select(User).where(User.id == int(payload["sub"]), User.is_active.is_(True)))
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthenticated("Invalid refresh token")

    return issue_tokens(user)

async def get_current_identity(token: str = Depends(oauth2_scheme)) -> Identity:
    """Resolve the caller from the bearer token"""
    payload = decode_token(token)
    if payload is None:
        raise Unauthenticated()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid user ID in token")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return Identity(user_id=user_id, roles=frozenset(roles))

async def get_current_user(identity: Identity = Depends(get_current_identity), db: AsyncSession = Depends(get_db)) -> User:
    """Get current authenticated user"""
    result = await db.execute(select(User).where(User.id == identity.user_id, User.is_active.is_(True)))
    user = result.scalar_one_or_none()

    if user is None:
        raise Unauthenticated()

    return user

@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user info"""
    return user_payload(current_user)

@router.get("/check-username/{username}")
async def check_username(username: str, db: AsyncSession = Depends(get_db)):
    exists = await username_exists(db, username)
    return {"exists": exists, "available": not exists}

@router.get("/check-email/{email}")
async def check_email(email: str, db: AsyncSession = Depends(get_db)):
    exists = await email_exists(db, email)
    return {"exists": exists, "available": not exists}

@router.post("/logout")
async def logout(identity: Identity = Depends(get_current_identity)):
    """Logout (tokens are stateless, the client discards them)"""
    return {"message": "Logged out successfully"}
