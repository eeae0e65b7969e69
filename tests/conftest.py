import os
import uuid

# Must be set before tradejournal builds its engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TRADE_JOURNAL_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import tradejournal.models  # noqa: F401
from tradejournal.api.deps import get_chart_cache
from tradejournal.db.database import Base, get_db
from tradejournal.main import app
from tradejournal.services.charts.local_cache import LocalBlobCache
from tradejournal.services.trade_store import clear_trades_cache

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture(autouse=True)
def _fresh_trades_cache():
    clear_trades_cache()
    yield
    clear_trades_cache()


@pytest_asyncio.fixture
async def async_session():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def chart_cache(tmp_path):
    return LocalBlobCache(tmp_path / "chart_cache")


@pytest_asyncio.fixture
async def client(async_session, chart_cache):
    async def override_get_db():
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chart_cache] = lambda: chart_cache

    transport = ASGITransport(app=app)

    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id):
    return {"X-User-Id": str(user_id)}
