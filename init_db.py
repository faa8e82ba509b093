"""Initialize database - Run this once to create all tables, roles and default users"""
import asyncio
from dochub.db.base import Base
from dochub.db.seed import seed_roles, seed_default_users
from dochub.db.session import engine, AsyncSessionLocal
from dochub.models import user, folder, file  # noqa: F401

async def init_db():
    print("Creating database tables...")

    async with engine.begin() as conn:
        # Drop all tables
        await conn.run_sync(Base.metadata.drop_all)
        # Create all tables
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await seed_roles(session)
        await seed_default_users(session)
        await session.commit()

    await engine.dispose()
    print("Database initialized successfully!")
    print("Admin: admin / SEED_ADMIN_PASSWORD, User: user / SEED_USER_PASSWORD")

if __name__ == "__main__":
    asyncio.run(init_db())
