"""
Pytest configuration and fixtures for assetflow tests
"""

import os
import sys
from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Settings are read at import time
os.environ.setdefault("ASSETFLOW_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ASSETFLOW_LOG_JSON", "false")

from assetflow.constants.assets import AssetStatus, Visibility  # noqa: E402
from assetflow.constants.roles import UserRole  # noqa: E402
from assetflow.database import Base  # noqa: E402
from assetflow.events import EventDispatcher  # noqa: E402
from assetflow.models import Asset, User  # noqa: E402

from utils.mocks import RecordingAuditSink, RecordingSubscriber  # noqa: E402

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# One shared connection so every session sees the same in-memory database
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

import assetflow.database as database_module  # noqa: E402
from main import app  # noqa: E402

database_module.engine = test_engine
database_module.AsyncSessionLocal = TestSessionLocal


@pytest.fixture(scope="function")
async def setup_test_database():
    """Fresh schema for each test that touches the database."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(setup_test_database):
    """Independent sessions, one per concurrent request"""
    return TestSessionLocal


@pytest.fixture(scope="function")
async def test_db(setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


async def _create_user(db: AsyncSession, email: str, role: UserRole, company_id: str | None = "acme", **kwargs) -> User:
    user = User(email=email, name=email.split("@")[0], role=role, company_id=company_id, **kwargs)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def creator(test_db: AsyncSession) -> User:
    """Content creator who uploads the assets under test"""
    return await _create_user(test_db, "creator@example.com", UserRole.CONTENT_CREATOR)


@pytest.fixture
async def other_creator(test_db: AsyncSession) -> User:
    return await _create_user(test_db, "other@example.com", UserRole.CONTENT_CREATOR)


@pytest.fixture
async def seo_user(test_db: AsyncSession) -> User:
    return await _create_user(test_db, "seo@example.com", UserRole.SEO_SPECIALIST)


@pytest.fixture
async def outsider(test_db: AsyncSession) -> User:
    """Creator belonging to a different company"""
    return await _create_user(test_db, "outsider@example.com", UserRole.CONTENT_CREATOR, company_id="globex")


@pytest.fixture
async def admin(test_db: AsyncSession) -> User:
    return await _create_user(test_db, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
async def inactive_user(test_db: AsyncSession) -> User:
    return await _create_user(test_db, "inactive@example.com", UserRole.CONTENT_CREATOR, is_active=False)


@pytest.fixture
def create_asset(test_db: AsyncSession):
    """Factory inserting an asset row directly, in any status."""

    async def _create(
        uploader: User,
        status: AssetStatus = AssetStatus.DRAFT,
        visibility: Visibility = Visibility.UPLOADER_ONLY,
        allowed_role: UserRole | None = None,
        title: str = "Launch banner",
    ) -> Asset:
        asset = Asset(
            title=title,
            uploader_id=uploader.id,
            company_id=uploader.company_id,
            status=status,
            visibility=visibility,
            allowed_role=allowed_role,
        )
        test_db.add(asset)
        await test_db.commit()
        await test_db.refresh(asset)
        return asset

    return _create


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture
def dispatcher(subscriber: RecordingSubscriber) -> EventDispatcher:
    """Private dispatcher with one recording subscriber for every event."""
    from assetflow.events import AssetEvent

    dispatcher = EventDispatcher()
    dispatcher.subscribe(AssetEvent, subscriber)
    return dispatcher


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user"""
    from assetflow.auth import create_access_token

    def _headers(user: User) -> dict:
        access_token = create_access_token(data={"sub": user.id}, expires_delta=timedelta(minutes=30))
        return {"Authorization": f"Bearer {access_token}"}

    return _headers


@pytest.fixture
async def client(setup_test_database) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the application and the test database"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
