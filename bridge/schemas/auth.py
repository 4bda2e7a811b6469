from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

if TYPE_CHECKING:
    from bridge.models.role import Role
    from bridge.models.user import User


class RoleSummary(BaseModel):
    id: int
    name: str
    code: str

    @classmethod
    def from_role(cls, role: Role) -> RoleSummary:
        return cls(id=role.id, name=role.name, code=role.code)


class UserSummary(BaseModel):
    id: str
    email: str
    name: str
    username: str
    avatar: str
    roles: list[RoleSummary]

    @classmethod
    def from_user(cls, user: User) -> UserSummary:
        """Build the wire representation of a user. Roles must already be loaded."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            username=user.username,
            avatar=user.avatar,
            roles=[RoleSummary.from_role(role) for role in user.roles],
        )


class ExchangeRequest(BaseModel):
    code: str


class ExchangeResponse(BaseModel):
    success: Literal[True] = True
    user: UserSummary
    roles: list[RoleSummary]
    token: str


class MeResponse(BaseModel):
    success: Literal[True] = True
    user: UserSummary


class AuthErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
