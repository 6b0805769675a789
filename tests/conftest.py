"""
Test infrastructure for the blog post service.

Strategy
--------
- SQLite in-memory via aiosqlite stands in for Postgres; it enforces the
  ``(blog_id, post_id)`` unique constraint the same way, which is all the
  id assignment protocol relies on.
- StaticPool makes every session share the one in-memory connection, since
  a new connection would see an empty database.
- The app's get_db dependency is overridden so every request uses the test
  session factory.
- Tables are created before and dropped after each test.
- Redis is disabled (cache._redis = None); the CacheManager treats that as
  a permanent miss, so tests exercise the real database path.  Cache tests
  install an in-memory fake instead.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blogserver.cache import cache, discard_invalidations
from blogserver.database import Base, commit, get_db
from blogserver.main import app
from blogserver.middleware import install_query_counter

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await session.rollback()
            discard_invalidations(session)
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def disable_cache():
    cache._redis = None
    yield
    cache._redis = None


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call the post store directly.

    ``create_post`` rolls the session back when it loses an id race, so
    tests commit after each create to keep earlier rows.  Committing through
    ``database.commit`` also applies the cache invalidations it recorded.
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def broken_database():
    """
    Point get_db at a database file that cannot be opened, so the first
    statement of a request fails while connecting.
    """
    broken_engine = create_async_engine("sqlite+aiosqlite:////nonexistent-dir/blog.db")
    broken_sessions = async_sessionmaker(broken_engine, class_=AsyncSession)

    async def broken_get_db():
        async with broken_sessions() as session:
            yield session

    app.dependency_overrides[get_db] = broken_get_db
    yield broken_sessions
    app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture
async def file_sessions(tmp_path):
    """
    Session factory over a file-backed SQLite database.

    Unlike the in-memory engine, each session gets its own connection, so
    one session does not see another's uncommitted changes.
    """
    file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'blog.db'}")
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    await file_engine.dispose()
