from datetime import datetime

import sqlmodel

from bridge.core.enums import AuthProvider, UserStatus
from bridge.utils.misc import get_utc_now

from ._base import BaseModel
from .role import Role, UserRoleLink


class User(BaseModel, table=True):
    __tablename__: str = "users"

    id: str = sqlmodel.Field(primary_key=True, index=True, max_length=64)
    """Provider user ID for accounts created through the provider"""
    email: str = sqlmodel.Field(max_length=255, index=True, unique=True)
    name: str = ""
    username: str = sqlmodel.Field(default="", max_length=100)
    avatar: str = ""
    status: UserStatus = UserStatus.ACTIVE
    verified: bool = False

    auth_provider: AuthProvider | None = None
    external_auth_only: bool = False
    """Password login is disabled for this account"""
    password_hash: str | None = sqlmodel.Field(default=None, nullable=True)

    created_at: datetime = sqlmodel.Field(
        default_factory=get_utc_now, sa_type=sqlmodel.DateTime(timezone=True)
    )
    updated_at: datetime = sqlmodel.Field(
        default_factory=get_utc_now, sa_type=sqlmodel.DateTime(timezone=True)
    )

    roles: list[Role] = sqlmodel.Relationship(link_model=UserRoleLink)

    def __str__(self) -> str:
        return f"{self.email} (#{self.id})"
