"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SITE_URL", "https://scuola.test")
os.environ.setdefault("API_URL", "https://api.scuola.test")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")

# Test data uses the reserved ".test" domain; email-validator rejects it
# unless its documented test-environment switch is on.
import email_validator

email_validator.TEST_ENVIRONMENT = True

from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import quadriparlanti.worker as worker
from quadriparlanti.auth.security import create_api_key, hash_password
from quadriparlanti.db.models import (
    Theme,
    ThemeStatus,
    User,
    UserRole,
    UserStatus,
    Work,
    WorkStatus,
    WorkTheme,
)
from quadriparlanti.db.session import Base, get_db
from quadriparlanti.main import app
from quadriparlanti.middleware.rate_limit import limiter
from quadriparlanti.services.storage import storage_service

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def storage_client():
    """Replace the S3 client with a mock."""
    mock = MagicMock()
    mock.generate_presigned_url.return_value = "https://storage.test/presigned"
    storage_service._client = mock
    storage_service._ensured_buckets = set()
    yield mock
    storage_service._client = None


@pytest.fixture(autouse=True)
def dispatched(monkeypatch) -> list[tuple[str, tuple]]:
    """Record background tasks instead of publishing them to the broker."""
    calls: list[tuple[str, tuple]] = []

    def record(task, *args):
        calls.append((task.name.rsplit(".", 1)[-1], args))
        return True

    monkeypatch.setattr(worker, "dispatch_task", record)
    return calls


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


async def _make_user(
    db: AsyncSession,
    email: str,
    role: UserRole,
    status: UserStatus = UserStatus.ACTIVE,
    password: str = "password123",
) -> User:
    user = User(
        email=email,
        name=email.split("@")[0].title(),
        role=role,
        status=status,
        password_hash=hash_password(password),
    )
    db.add(user)
    await db.flush()
    return user


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    user = await _make_user(db_session, "admin@scuola.test", UserRole.ADMIN)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def teacher_user(db_session: AsyncSession) -> User:
    user = await _make_user(db_session, "rossi@scuola.test", UserRole.DOCENTE)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_teacher(db_session: AsyncSession) -> User:
    user = await _make_user(db_session, "bianchi@scuola.test", UserRole.DOCENTE)
    await db_session.commit()
    return user


async def _headers_for(db: AsyncSession, user: User) -> dict:
    _, full_key = await create_api_key(db, user, name="Test Key")
    await db.commit()
    return {"Authorization": f"Bearer {full_key}"}


@pytest_asyncio.fixture
async def admin_headers(db_session: AsyncSession, admin_user: User) -> dict:
    return await _headers_for(db_session, admin_user)


@pytest_asyncio.fixture
async def teacher_headers(db_session: AsyncSession, teacher_user: User) -> dict:
    return await _headers_for(db_session, teacher_user)


@pytest_asyncio.fixture
async def other_teacher_headers(db_session: AsyncSession, other_teacher: User) -> dict:
    return await _headers_for(db_session, other_teacher)


@pytest_asyncio.fixture
async def make_theme(db_session: AsyncSession):
    """Factory inserting a theme directly."""
    counter = {"n": 0}

    async def factory(
        slug: str | None = None,
        status: ThemeStatus = ThemeStatus.PUBLISHED,
        display_order: int | None = None,
    ) -> Theme:
        counter["n"] += 1
        n = counter["n"]
        theme = Theme(
            title_it=f"Tema numero {n}",
            description_it="Descrizione del tema con abbastanza testo per superare la validazione.",
            slug=slug or f"tema-{n}",
            status=status,
            display_order=n if display_order is None else display_order,
        )
        db_session.add(theme)
        await db_session.commit()
        return theme

    return factory


@pytest_asyncio.fixture
async def make_work(db_session: AsyncSession):
    """Factory inserting a work in any status, bypassing the lifecycle."""

    async def factory(
        owner: User,
        status: WorkStatus = WorkStatus.DRAFT,
        themes: list[Theme] | None = None,
        title_it: str = "La Divina Commedia illustrata",
        **fields,
    ) -> Work:
        work = Work(
            title_it=title_it,
            description_it=fields.pop("description_it", "Un lavoro della classe sul poema di Dante."),
            class_name=fields.pop("class_name", "3A"),
            teacher_name=fields.pop("teacher_name", "Prof. Rossi"),
            school_year=fields.pop("school_year", "2024-25"),
            status=status,
            created_by=owner.id,
            **fields,
        )
        db_session.add(work)
        await db_session.flush()
        for theme in themes or []:
            db_session.add(WorkTheme(work_id=work.id, theme_id=theme.id))
        await db_session.commit()
        return work

    return factory
