from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from bridge.core.config import settings
from bridge.models.exchange_session import ExchangeSession  # noqa: F401
from bridge.models.user import User  # noqa: F401

engine = create_async_engine(settings.db_url)


async def init_db() -> None:
    """Create the tables used by the identity bridge if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession]:
    async with AsyncSession(
        engine, autocommit=False, autoflush=False, expire_on_commit=False
    ) as session:
        yield session
