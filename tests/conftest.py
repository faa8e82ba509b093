import os
import tempfile

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "local"
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="dochub-uploads-"))

import itertools

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dochub.main import app
from dochub.core.permissions import Identity
from dochub.core.security import create_access_token, get_password_hash
from dochub.db.base import Base
from dochub.db.seed import seed_roles
from dochub.db.session import get_db
from dochub.models.file import File
from dochub.models.folder import Folder
from dochub.models.user import ADMIN_ROLE, USER_ROLE, User
from dochub.services.storage import LocalStorageService, get_storage

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)

_stored_names = itertools.count(1)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalStorageService(str(tmp_path / "uploads"))


@pytest_asyncio.fixture
async def client(session_factory, storage):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def make_user(db, username, *role_names):
    roles = await seed_roles(db)
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=PASSWORD_HASH,
        roles=[roles[name] for name in role_names or (USER_ROLE,)],
    )
    db.add(user)
    await db.commit()
    return user


async def make_folder(db, name, owner, parent=None):
    folder = Folder(
        name=name,
        owner_id=owner.id if owner is not None else None,
        parent_id=parent.id if parent is not None else None,
    )
    db.add(folder)
    await db.commit()
    return folder


async def make_file(db, name, owner, folder=None, **fields):
    file = File(
        display_name=name,
        stored_name=f"blob-{next(_stored_names)}.bin",
        content_type="application/octet-stream",
        size_bytes=fields.pop("size_bytes", 10),
        owner_id=owner.id if owner is not None else None,
        folder_id=folder.id if folder is not None else None,
        **fields,
    )
    db.add(file)
    await db.commit()
    return file


def identity_for(user):
    return Identity(user_id=user.id, roles=frozenset(user.role_names))


def auth_headers(user):
    token = create_access_token({
        "sub": str(user.id),
        "username": user.username,
        "email": user.email,
        "roles": user.role_names,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def alice(db):
    return await make_user(db, "alice")


@pytest_asyncio.fixture
async def bob(db):
    return await make_user(db, "bob")


@pytest_asyncio.fixture
async def admin(db):
    return await make_user(db, "admin", ADMIN_ROLE)
