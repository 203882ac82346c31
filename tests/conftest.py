"""Test configuration and fixtures.

Tests run against an in-memory SQLite database (one per test) and a stub Redis,
so no external services are needed. Outgoing email is captured by patching
the sender factory used by the notifier.
"""

import os

# Cheap password hashing for tests; must be set before the settings load.
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENV", "test")

from collections.abc import AsyncGenerator
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from propertyhub.config import settings
from propertyhub.database import Base, get_db
from propertyhub.main import app
from propertyhub.models.account import Account
from propertyhub.redis import get_redis
from propertyhub.schemas.account import RegisterRequest
from propertyhub.services.account_store import AccountStore


class StubRedis:
    """Stands in for Redis in the rate limiter: answers every bucket check
    with a fixed (allowed, remaining, retry_after) triple and records calls."""

    def __init__(self, allowed: bool = True, retry_after: int = 0) -> None:
        self.allowed = allowed
        self.retry_after = retry_after
        self.calls: list[tuple] = []

    async def eval(self, script: str, numkeys: int, *args: object) -> list[int]:
        self.calls.append(args)
        if self.allowed:
            return [1, 99, 0]
        return [0, 0, self.retry_after]

    async def aclose(self) -> None:
        pass


@pytest.fixture(autouse=True)
def _isolate_settings() -> None:
    """Snapshot settings before each test and restore after to prevent mutation bleed."""
    original = settings.model_dump()
    object.__setattr__(settings, "email_backend", "log")
    yield  # type: ignore[misc]
    for key, value in original.items():
        object.__setattr__(settings, key, value)


@pytest.fixture(autouse=True)
def email_sender() -> AsyncMock:
    """Captures every email the notifier sends."""
    sender = AsyncMock()
    with patch("propertyhub.services.notifier.get_email_sender", return_value=sender):
        yield sender


@pytest_asyncio.fixture
async def _engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        settings.test_database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(bind=_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def stub_redis() -> StubRedis:
    return StubRedis()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    stub_redis: StubRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client with overridden DB and Redis dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[StubRedis, None]:
        yield stub_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_register_data(
    email: str = "ana@example.com",
    username: str = "ana",
    document: str | None = "1001",
    password: str = "s3cret-pass",
) -> dict:
    """Factory for registration payload."""
    return {
        "name": "Ana Gomez",
        "email": email,
        "username": username,
        "password": password,
        "document": document,
        "phone": "+57 300 000 0000",
        "birth_date": date(1990, 5, 17).isoformat(),
    }


def make_register_request(**kwargs: object) -> RegisterRequest:
    return RegisterRequest(**make_register_data(**kwargs))  # type: ignore[arg-type]


async def load_account(db: AsyncSession, email: str) -> Account:
    account = await AccountStore(db).find_by_email(email)
    assert account is not None
    return account
