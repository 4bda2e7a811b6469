import sqlmodel

from ._base import BaseModel


class UserRoleLink(BaseModel, table=True):
    __tablename__: str = "user_roles"

    user_id: str = sqlmodel.Field(foreign_key="users.id", primary_key=True)
    role_id: int = sqlmodel.Field(foreign_key="roles.id", primary_key=True)


class Role(BaseModel, table=True):
    __tablename__: str = "roles"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    name: str = sqlmodel.Field(max_length=100)
    code: str = sqlmodel.Field(max_length=50, index=True, unique=True)
    """Stable identifier used for lookups, e.g. `member`"""

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"
