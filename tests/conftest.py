"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The application is built with ``create_app`` around a test ``Database``
  and a ``CacheManager`` that is never connected, so every cache call is a
  no-op and the suite needs no Redis.
- All tables are created fresh before each test and dropped after.
- bcrypt runs with the minimum cost factor to keep registration fast.
"""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from blogapi.cache import CacheManager  # noqa: E402
from blogapi.database import Database  # noqa: E402
from blogapi.main import create_app  # noqa: E402
from blogapi.models import Category, Role, Tag, User  # noqa: E402
from blogapi.security import Caller, create_access_token, hash_password  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
DEFAULT_PASSWORD = "Passw0rd!"

test_database = Database(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
test_cache = CacheManager("redis://unused")

app = create_app(database=test_database, cache=test_cache)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    await test_database.open()
    await test_database.create_all()
    yield
    await test_database.drop_all()
    await test_database.close()


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call services directly.
    Service functions only flush; tests commit when they need to.
    """
    async with test_database.session() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    httpx.AsyncClient wired to the app via ASGITransport.  The lifespan is
    not run; the database is opened by ``setup_db`` and the cache stays
    disconnected.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

async def make_user(
    session: AsyncSession,
    username: str,
    role: Role = Role.USER,
    is_active: bool = True,
) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        password_hash=hash_password(DEFAULT_PASSWORD),
        role=role,
        is_active=is_active,
    )
    session.add(user)
    await session.commit()
    return user


def caller_for(user: User) -> Caller:
    return Caller(user_id=user.id, email=user.email, username=user.username, role=user.role)


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.email, user.username, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def author(db_session: AsyncSession) -> User:
    return await make_user(db_session, "author")


@pytest_asyncio.fixture
async def reader(db_session: AsyncSession) -> User:
    return await make_user(db_session, "reader")


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin", role=Role.ADMIN)


@pytest_asyncio.fixture
async def category(db_session: AsyncSession) -> Category:
    item = Category(name="Engineering", slug="engineering")
    db_session.add(item)
    await db_session.commit()
    return item


@pytest_asyncio.fixture
async def tags(db_session: AsyncSession) -> list[Tag]:
    items = [Tag(name="Python", slug="python"), Tag(name="Databases", slug="databases")]
    db_session.add_all(items)
    await db_session.commit()
    return items


async def post_article(client: AsyncClient, user: User, category_id: int, slug: str, **overrides) -> dict:
    """Create an article through the API and return its ``data`` payload."""
    payload = {
        "title": "Untitled post",
        "slug": slug,
        "content": "A body long enough to pass validation.",
        "category_id": category_id,
    }
    payload.update(overrides)
    resp = await client.post("/api/v1/articles", json=payload, headers=auth_headers(user))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
