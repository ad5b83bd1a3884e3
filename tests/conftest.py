"""Test fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api.shipping import get_http_transport
from app.database import Base, get_db
from app.main import app, shipping_limiter
from app.models import SystemConfig

# SQLite for tests (no external DB needed)
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
TEST_API_KEY = "test-storefront-key"

test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=NullPool)
test_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with test_session() as session:
        session.add(SystemConfig(key="app.apiKey", value=TEST_API_KEY))
        await session.commit()
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


class FakeUpstream:
    """Stands in for Correios, ViaCEP and AliExpress; routes by host."""

    def __init__(self):
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.host)
        if route is None:
            return httpx.Response(503, text="upstream unavailable")
        return route(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture(autouse=True)
def upstream():
    fake = FakeUpstream()
    app.dependency_overrides[get_http_transport] = fake.transport
    yield fake
    app.dependency_overrides.pop(get_http_transport, None)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    shipping_limiter.reset()
    yield


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"x-api-key": TEST_API_KEY}


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_headers(client: AsyncClient) -> dict[str, str]:
    from app.config import get_settings

    settings = get_settings()
    resp = await client.post(
        "/api/auth/login",
        json={"email": settings.admin_email, "password": settings.admin_password},
    )
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}
