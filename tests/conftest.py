"""
Test infrastructure for the Comment Service.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after.
- ASGITransport does not run the lifespan hook, so each test installs a
  fresh MemoryCache on ``app.state.cache``; the same instance is exposed as
  the ``cache`` fixture for assertions.
- Service-level tests that count store round trips use FakeCommentStore
  from ``fakes.py``, an in-memory stand-in for SqlCommentStore.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.cache import MemoryCache
from app.database import Base, get_db
from app.main import app
from app.middleware import install_query_counter
from app.models import Post
from fakes import FakeClock

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


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
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


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Yield a live AsyncSession for seeding data and asserting ORM state."""
    async with async_session_test() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryCache:
    return MemoryCache(default_ttl=3600, clock=clock)


@pytest_asyncio.fixture
async def seed_posts():
    """Return a coroutine that inserts posts with the given ids and commits."""

    async def _seed(*post_ids: int) -> None:
        async with async_session_test() as session:
            for pid in post_ids:
                session.add(Post(id=pid, user_id=1, title=f"Post {pid}", body="Body"))
            await session.commit()

    return _seed


@pytest_asyncio.fixture
async def async_client(cache: MemoryCache) -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport,
    with a fresh process-local cache installed for this test.
    """
    app.state.cache = cache
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
