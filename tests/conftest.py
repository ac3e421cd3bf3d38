import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REQUIRE_APPROVAL"] = "false"
os.environ.pop("SMTP_HOST", None)
os.environ.pop("DB_SCHEMA", None)

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nine_worlds.database import Base, get_async_session
from nine_worlds.main import app, seed_roles
from nine_worlds.models.user_model import (
    ADMIN_ROLE_ID,
    AUTHOR_ROLE_ID,
    MODERATOR_ROLE_ID,
    OWNER_ROLE_ID,
    READER_ROLE_ID,
    TRANSLATOR_ROLE_ID,
)
from nine_worlds.services import identity

PASSWORD = "correct-horse-battery"


@pytest.fixture
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
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        await seed_roles(session)
        yield session


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(role_id: int = READER_ROLE_ID, username: str = None, password: str = PASSWORD):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = await identity.create_user(db, f"{username}@example.com", username, password)
        assert user is not None
        if role_id != READER_ROLE_ID:
            user.role_id = role_id
            await db.commit()
            await db.refresh(user)
        return user

    return _make


@pytest.fixture
async def owner(make_user):
    return await make_user(OWNER_ROLE_ID, "owner")


@pytest.fixture
async def admin(make_user):
    return await make_user(ADMIN_ROLE_ID, "admin")


@pytest.fixture
async def moderator(make_user):
    return await make_user(MODERATOR_ROLE_ID, "moderator")


@pytest.fixture
async def author(make_user):
    return await make_user(AUTHOR_ROLE_ID, "author")


@pytest.fixture
async def translator(make_user):
    return await make_user(TRANSLATOR_ROLE_ID, "translator")


@pytest.fixture
async def reader(make_user):
    return await make_user(READER_ROLE_ID, "reader")


@pytest.fixture
async def client(db, session_factory):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Log in over HTTP and return Bearer headers for that user."""

    async def _login(username: str, password: str = PASSWORD) -> dict:
        resp = await client.post("/auth/login", json={"identifier": username, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login
