"""
Pytest configuration and shared test fixtures.

Tests run against an in-memory SQLite database built from the ORM metadata,
with foreign keys enforced so history rows cascade with their order. The S3
photo store is replaced by a mock.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("APP_PHOTO_PUBLIC_BASE_URL", "https://photos.example.com")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

from decimal import Decimal
from typing import Any, AsyncGenerator
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cargo_api.api.deps import get_photo_storage
from cargo_api.core.rate_limit import limiter
from cargo_api.core.security import create_access_token, hash_password
from cargo_api.database.connection import get_db
from cargo_api.database.models import Base, Worker, WorkerRole
from cargo_api.main import app
from cargo_api.services.auth.service import ActingIdentity
from cargo_api.services.orders.service import OrderLifecycleService
from cargo_api.services.storage.photos import PhotoStorage

TEST_PASSWORD = "correct-horse-battery"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)
PHOTO_URL = "https://photos.example.com/order-photos/HS12_1700000000000.jpg"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Worker Fixtures
# ============================================================================


async def _add_worker(
    session: AsyncSession,
    email: str,
    name: str,
    code: str | None,
    role: WorkerRole = WorkerRole.WORKER,
) -> Worker:
    worker = Worker(
        email=email,
        password_hash=TEST_PASSWORD_HASH,
        name=name,
        code=code,
        role=role,
    )
    session.add(worker)
    await session.flush()
    return worker


@pytest.fixture
async def worker(db_session: AsyncSession) -> Worker:
    """Field worker with code HS12."""
    created = await _add_worker(db_session, "bat@cargo.mn", "Bat Erdene", "HS12")
    await db_session.commit()
    return created


@pytest.fixture
async def other_worker(db_session: AsyncSession) -> Worker:
    """Second field worker with code BT7."""
    created = await _add_worker(db_session, "saraa@cargo.mn", "Saraa Dorj", "BT7")
    await db_session.commit()
    return created


@pytest.fixture
async def executive(db_session: AsyncSession) -> Worker:
    created = await _add_worker(
        db_session,
        "boss@cargo.mn",
        "Oyun Manager",
        "EX100",
        role=WorkerRole.EXECUTIVE,
    )
    await db_session.commit()
    return created


@pytest.fixture
def worker_identity(worker: Worker) -> ActingIdentity:
    return ActingIdentity.from_worker(worker)


@pytest.fixture
def other_worker_identity(other_worker: Worker) -> ActingIdentity:
    return ActingIdentity.from_worker(other_worker)


@pytest.fixture
def executive_identity(executive: Worker) -> ActingIdentity:
    return ActingIdentity.from_worker(executive)


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def photo_storage() -> MagicMock:
    """Mock photo store returning a fixed URL."""
    storage = MagicMock(spec=PhotoStorage)
    storage.upload_order_photo.return_value = PHOTO_URL
    storage.delete_photo.return_value = True
    return storage


@pytest.fixture
def order_service(
    db_session: AsyncSession, photo_storage: MagicMock
) -> OrderLifecycleService:
    return OrderLifecycleService(db_session, photo_storage=photo_storage)


@pytest.fixture
def order_fields() -> dict[str, Any]:
    return {
        "sender_name": "Ganaa",
        "sender_phone": "99112233",
        "receiver_name": "Tuya",
        "receiver_phone": "88001122",
        "cargo_type": "Clothes",
        "weight": Decimal("4.50"),
        "price": Decimal("25000.00"),
        "notes": "Fragile",
    }


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    photo_storage: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client bound to the app, with the test database and mock photo
    store swapped in.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_photo_storage] = lambda: photo_storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers_for(worker: Worker) -> dict[str, str]:
    token = create_access_token(
        worker_id=worker.id,
        role=worker.role.value,
        email=worker.email,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def worker_headers(worker: Worker) -> dict[str, str]:
    return auth_headers_for(worker)


@pytest.fixture
def other_worker_headers(other_worker: Worker) -> dict[str, str]:
    return auth_headers_for(other_worker)


@pytest.fixture
def executive_headers(executive: Worker) -> dict[str, str]:
    return auth_headers_for(executive)
