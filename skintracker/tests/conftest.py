"""
Shared pytest configuration for skintracker tests.

Service tests run against an in-memory SQLite database (aiosqlite) with the
tables created from the models, one fresh database per test. Environment
defaults are set before any skintracker module is imported so the app never
reaches for Postgres, Redis or SendGrid.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENABLE_CACHE", "false")
os.environ.setdefault("ENABLE_EMAIL", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402

from skintracker.database.db import Base  # noqa: E402
from skintracker.database.models import User, Skin  # noqa: E402
from skintracker.services import auth_service  # noqa: E402
from skintracker.utils.datetime_utils import utcnow  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture
async def db_session():
    """Create a test database session."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def make_user(db_session):
    """Factory for users; verified with TEST_PASSWORD unless told otherwise."""
    counter = {"n": 0}

    async def _make_user(verified=True, password=TEST_PASSWORD, email=None, username=None, name="Test User"):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=email or f"user{n}@example.com",
            username=username or f"user{n}",
            name=name,
            password_hash=auth_service.hash_password(password) if password else None,
            email_verified=utcnow() if verified else None,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def test_user(make_user):
    return await make_user()


@pytest_asyncio.fixture
async def other_user(make_user):
    return await make_user(name="Other User")


def _skin(skin_id, name, weapon, image_url=None, tier="Unknown"):
    return Skin(
        id=skin_id,
        name=name,
        weapon=weapon,
        tier=tier,
        cost=0,
        image_url=image_url or f"https://img.example.com/{skin_id}.png",
        chromas=[{"uuid": f"{skin_id}-c1", "fullRender": image_url}],
        levels=[{"streamedVideo": None}],
    )


@pytest_asyncio.fixture
async def skins(db_session):
    """
    A small catalog: standard skins for Vandal, Phantom and the knife plus a
    few named skins.
    """
    rows = [
        _skin("std-vandal", "Standard Vandal", "Vandal"),
        _skin("std-phantom", "Standard Phantom", "Phantom"),
        _skin("melee", "Melee", "Melee"),
        _skin("prime-vandal", "Prime Vandal", "Vandal", tier="60bca009-4182-7998-dee7-b8a2558dc369"),
        _skin("reaver-vandal", "Reaver Vandal", "Vandal"),
        _skin("oni-phantom", "Oni Phantom", "Phantom"),
        _skin("prime-classic", "Prime Classic", "Classic"),
        _skin("reaver-knife", "Reaver Knife", "Melee"),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return {skin.id: skin for skin in rows}
