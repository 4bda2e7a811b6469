from datetime import datetime

import sqlmodel

from bridge.utils.misc import ensure_utc, get_utc_now

from ._base import BaseModel


class ExchangeSession(BaseModel, table=True):
    """One-time code handed to the browser in place of the provider's access token."""

    __tablename__: str = "exchange_sessions"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    code: str = sqlmodel.Field(max_length=255, index=True, unique=True)
    state: str = sqlmodel.Field(max_length=255, index=True, unique=True)
    """CSRF state of the handshake that produced this session"""
    user_id: str = sqlmodel.Field(foreign_key="users.id", index=True)
    used: bool = sqlmodel.Field(default=False, index=True)
    expires_at: datetime = sqlmodel.Field(sa_type=sqlmodel.DateTime(timezone=True))
    created_at: datetime = sqlmodel.Field(
        default_factory=get_utc_now, sa_type=sqlmodel.DateTime(timezone=True)
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        return ensure_utc(self.expires_at) <= (now or get_utc_now())
