from datetime import timedelta

import pytest
import pytest_asyncio

from bridge.core.config import Config
from bridge.core.exceptions import InvalidCodeError
from bridge.models.exchange_session import ExchangeSession
from bridge.models.user import User
from bridge.services.auth import AuthService
from bridge.services.exchange_session import ExchangeSessionService
from bridge.services.identity import IdentityService
from bridge.services.provider import MattermostClient
from bridge.utils.misc import get_utc_now

from .conftest import SessionFactory

pytestmark = pytest.mark.asyncio


class PrefetchedSessionStore(ExchangeSessionService):
    """Session store whose lookup returns a row read before another request redeemed it."""

    def __init__(self, *args, prefetched: ExchangeSession, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.prefetched = prefetched

    async def find_unused_by_code(self, code: str) -> ExchangeSession | None:
        return self.prefetched


@pytest_asyncio.fixture(autouse=True)
async def pending_code(session_factory: SessionFactory) -> None:
    async with session_factory() as db:
        db.add(User(id="u1", email="a@x.com"))
        db.add(
            ExchangeSession(
                code="E1",
                state="S1",
                user_id="u1",
                expires_at=get_utc_now() + timedelta(minutes=1),
            )
        )
        await db.commit()


async def test_concurrent_redemption_issues_one_token(
    session_factory: SessionFactory, provider_client: MattermostClient, config: Config
) -> None:
    async with session_factory() as db_a, session_factory() as db_b:
        # Both requests have already seen the code as unused
        seen_by_b = await ExchangeSessionService(db_b, config).find_unused_by_code("E1")
        assert seen_by_b is not None
        await db_b.commit()

        first = AuthService(
            provider_client,
            IdentityService(db_a, config),
            ExchangeSessionService(db_a, config),
            config,
        )
        second = AuthService(
            provider_client,
            IdentityService(db_b, config),
            PrefetchedSessionStore(db_b, config, prefetched=seen_by_b),
            config,
        )

        redeemed = await first.redeem("E1")
        with pytest.raises(InvalidCodeError):
            await second.redeem("E1")

    assert redeemed.token
    assert redeemed.user.id == "u1"
    async with session_factory() as db:
        assert await ExchangeSessionService(db, config).find_unused_by_code("E1") is None


async def test_redeemed_code_is_not_found_again(
    session_factory: SessionFactory, provider_client: MattermostClient, config: Config
) -> None:
    async with session_factory() as db:
        service = AuthService(
            provider_client,
            IdentityService(db, config),
            ExchangeSessionService(db, config),
            config,
        )

        await service.redeem("E1")
        with pytest.raises(InvalidCodeError):
            await service.redeem("E1")
