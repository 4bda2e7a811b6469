from datetime import timedelta
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bridge.core.config import Config, get_settings
from bridge.core.db import get_db
from bridge.core.security import generate_token
from bridge.models.exchange_session import ExchangeSession
from bridge.utils.misc import get_utc_now


class ExchangeSessionService:
    """Storage for one-time exchange codes.

    Rows are never deleted here; purging used or expired sessions is left to
    housekeeping outside the request path.
    """

    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        settings: Annotated[Config, Depends(get_settings)],
    ) -> None:
        self.db = db
        self.settings = settings

    async def find_by_state(self, state: str) -> ExchangeSession | None:
        result = await self.db.exec(select(ExchangeSession).where(ExchangeSession.state == state))
        return result.first()

    async def find_unused_by_code(self, code: str) -> ExchangeSession | None:
        result = await self.db.exec(
            select(ExchangeSession).where(
                ExchangeSession.code == code,
                ExchangeSession.used == False,  # noqa: E712
            )
        )
        return result.first()

    async def create_or_get(self, user_id: str, state: str) -> tuple[ExchangeSession, bool]:
        """Insert a session for `state` unless one already exists.

        Relies on the unique constraint on `state`, so two concurrent callbacks for
        the same handshake end up with the same session.

        Returns:
            The session and whether this call created it.
        """
        session = ExchangeSession(
            code=generate_token(),
            state=state,
            user_id=user_id,
            used=False,
            expires_at=get_utc_now() + timedelta(seconds=self.settings.exchange_code_ttl_seconds),
        )
        self.db.add(session)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.find_by_state(state)
            if existing is None:
                raise
            logger.info(f"Exchange session for user {existing.user_id} already issued")
            return existing, False

        await self.db.refresh(session)
        logger.debug(f"Created exchange session {session.id} for user {user_id}")
        return session, True

    async def mark_used(self, session: ExchangeSession) -> bool:
        """Flip `used` from false to true.

        Returns:
            False if another request redeemed the session first.
        """
        result = await self.db.execute(
            update(ExchangeSession)
            .where(
                col(ExchangeSession.id) == session.id,
                col(ExchangeSession.used) == False,  # noqa: E712
            )
            .values(used=True)
        )
        await self.db.commit()
        if result.rowcount != 1:  # pyright: ignore[reportAttributeAccessIssue]
            return False

        session.used = True
        return True
