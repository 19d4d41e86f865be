"""Test fixtures for the access core."""
import os
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_potion.db"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["RESEND_API_KEY"] = ""

from potion import models  # noqa: E402
from potion.database import AsyncSessionLocal, engine  # noqa: E402
from potion.main import app  # noqa: E402
from potion.models import AccessLevel, RoleStatus, RoleType, User, UserRole  # noqa: E402
from potion.security import hash_password  # noqa: E402
from tests.helpers import PASSWORD, unique_email  # noqa: E402

test_db_path = Path("test_potion.db")


@pytest_asyncio.fixture(autouse=True)
async def prepare_database():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.drop_all)
    if test_db_path.exists():
        test_db_path.unlink()


@pytest_asyncio.fixture
async def db_session():
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client():
    """Provide an HTTP client for integration tests."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def make_user(db_session):
    async def _make_user(email=None, password=PASSWORD, **fields) -> User:
        user = User(
            email=email or unique_email(),
            password_hash=hash_password(password) if password else None,
            is_password_set=bool(password),
            is_active=bool(password),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_role(db_session):
    async def _make_role(
        user: User,
        role_type: RoleType,
        owner: User = None,
        access_level: AccessLevel = AccessLevel.CONTRIBUTOR,
        status: RoleStatus = RoleStatus.ACTIVE,
        project_access: dict = None,
    ) -> UserRole:
        if owner is None and role_type == RoleType.BUSINESS_OWNER:
            owner = user
        role = UserRole(
            user_id=user.id,
            email=user.email,
            role_type=role_type,
            business_owner_id=owner.id if owner is not None else None,
            access_level=access_level,
            status=status,
            project_access=project_access or {},
            profile={},
        )
        db_session.add(role)
        await db_session.commit()
        await db_session.refresh(role)
        return role

    return _make_role
