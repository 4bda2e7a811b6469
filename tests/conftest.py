import os

os.environ.update(
    {
        "DB_URL": "sqlite+aiosqlite://",
        "APP_URL": "https://app.example.com",
        "MATTERMOST_CLIENT_ID": "client-id",
        "MATTERMOST_CLIENT_SECRET": "client-secret",
        "MATTERMOST_SERVER_URL": "https://mm.example.com",
        "MATTERMOST_REDIRECT_URI": "https://testserver/api/auth/callback",
        "JWT_SECRET": "test-secret",
        "VERSION": "1.2.3",
    }
)

from collections.abc import AsyncIterator, Callable  # noqa: E402
from dataclasses import dataclass, field  # noqa: E402
from typing import Any  # noqa: E402
from urllib.parse import parse_qs  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from bridge.core.config import Config, get_settings, settings  # noqa: E402
from bridge.core.db import get_db  # noqa: E402
from bridge.main import app  # noqa: E402
from bridge.models.role import Role  # noqa: E402
from bridge.services.provider import MattermostClient, get_provider_client  # noqa: E402

SessionFactory = Callable[[], AsyncSession]


@dataclass
class FakeMattermost:
    """In-memory stand-in for the Mattermost OAuth service and users API."""

    profile: dict[str, Any] = field(
        default_factory=lambda: {
            "id": "mm-user-1",
            "email": "a@x.com",
            "username": "alice",
            "first_name": "Alice",
            "last_name": "Nguyen",
            "avatar_url": "https://mm.example.com/api/v4/users/mm-user-1/image",
            "locale": "en",
            "create_at": 1700000000000,
            "update_at": 1700000000000,
            "delete_at": 0,
        }
    )
    access_token: str = "T1"
    token_status: int = 200
    token_body: dict[str, Any] | None = None
    profile_status: int = 200
    token_requests: list[dict[str, list[str]]] = field(default_factory=list)
    profile_requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/access_token":
            self.token_requests.append(parse_qs(request.content.decode()))
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            body = self.token_body
            if body is None:
                body = {"access_token": self.access_token, "token_type": "bearer"}
            return httpx.Response(200, json=body)

        if request.url.path == "/api/v4/users/me":
            self.profile_requests.append(request)
            if request.headers.get("Authorization") != f"Bearer {self.access_token}":
                return httpx.Response(401, json={"message": "invalid token"})
            if self.profile_status != 200:
                return httpx.Response(self.profile_status, json={"message": "error"})
            return httpx.Response(200, json=self.profile)

        return httpx.Response(404)


@pytest.fixture
def config() -> Config:
    return settings


@pytest.fixture
def fake_mattermost() -> FakeMattermost:
    return FakeMattermost()


@pytest.fixture
def provider_client(config: Config, fake_mattermost: FakeMattermost) -> MattermostClient:
    return MattermostClient(config, transport=httpx.MockTransport(fake_mattermost.handler))


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSession(engine, expire_on_commit=False) as session:
        session.add(Role(name="Member", code="member"))
        await session.commit()

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> SessionFactory:
    def factory() -> AsyncSession:
        return AsyncSession(engine, autocommit=False, autoflush=False, expire_on_commit=False)

    return factory


@pytest_asyncio.fixture
async def db(session_factory: SessionFactory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(
    session_factory: SessionFactory, provider_client: MattermostClient, config: Config
) -> AsyncIterator[httpx.AsyncClient]:
    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider_client] = lambda: provider_client
    app.dependency_overrides[get_settings] = lambda: config

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://testserver"
    ) as client:
        yield client

    app.dependency_overrides.clear()
