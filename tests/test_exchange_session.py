from datetime import timedelta

import pytest
import pytest_asyncio
from sqlmodel import func, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bridge.core.config import Config
from bridge.models.exchange_session import ExchangeSession
from bridge.models.user import User
from bridge.services.exchange_session import ExchangeSessionService
from bridge.utils.misc import ensure_utc, get_utc_now

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(db: AsyncSession, config: Config) -> ExchangeSessionService:
    return ExchangeSessionService(db, config)


@pytest_asyncio.fixture(autouse=True)
async def user(db: AsyncSession) -> User:
    user = User(id="u1", email="a@x.com")
    db.add(user)
    await db.commit()
    return user


async def test_create_sets_code_and_expiry(service: ExchangeSessionService, config: Config) -> None:
    before = get_utc_now()

    session, created = await service.create_or_get("u1", "S1")

    assert created is True
    assert session.code
    assert session.code != "S1"
    assert session.used is False
    expires_at = ensure_utc(session.expires_at)
    ttl = timedelta(seconds=config.exchange_code_ttl_seconds)
    assert before + ttl <= expires_at <= get_utc_now() + ttl


async def test_create_for_same_state_returns_existing(
    service: ExchangeSessionService, db: AsyncSession
) -> None:
    first, _ = await service.create_or_get("u1", "S1")
    first_code = first.code

    second, created = await service.create_or_get("u1", "S1")

    assert created is False
    assert second.code == first_code
    result = await db.exec(select(func.count()).select_from(ExchangeSession))
    assert result.one() == 1


async def test_find_by_state(service: ExchangeSessionService) -> None:
    session, _ = await service.create_or_get("u1", "S1")

    found = await service.find_by_state("S1")

    assert found is not None
    assert found.code == session.code
    assert await service.find_by_state("S2") is None


async def test_mark_used_transitions_once(service: ExchangeSessionService) -> None:
    session, _ = await service.create_or_get("u1", "S1")

    assert await service.find_unused_by_code(session.code) is not None
    assert await service.mark_used(session) is True
    assert await service.mark_used(session) is False
    assert await service.find_unused_by_code(session.code) is None


async def test_is_expired() -> None:
    now = get_utc_now()
    session = ExchangeSession(code="c", state="s", user_id="u1", expires_at=now)

    assert session.is_expired(now) is True
    assert session.is_expired(now - timedelta(seconds=1)) is False
    # naive datetimes read back from SQLite are treated as UTC
    session.expires_at = (now + timedelta(minutes=1)).replace(tzinfo=None)
    assert session.is_expired(now) is False
