from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bridge.core.config import Config, get_settings
from bridge.core.db import get_db
from bridge.core.enums import AuthProvider, UserStatus
from bridge.core.exceptions import RoleNotFoundError
from bridge.models.role import Role
from bridge.models.user import User
from bridge.schemas.provider import ProviderProfile
from bridge.utils.misc import get_utc_now


class IdentityService:
    """Maps provider profiles onto local users."""

    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db)],
        settings: Annotated[Config, Depends(get_settings)],
    ) -> None:
        self.db = db
        self.settings = settings

    async def get_user(self, user_id: str) -> User | None:
        result = await self.db.exec(
            select(User).where(User.id == user_id).options(selectinload(User.roles))  # pyright: ignore[reportArgumentType]
        )
        return result.first()

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.db.exec(
            select(User).where(User.email == email).options(selectinload(User.roles))  # pyright: ignore[reportArgumentType]
        )
        return result.first()

    async def get_roles_by_codes(self, codes: Sequence[str]) -> list[Role]:
        """Look up roles by code, preserving order.

        Raises:
            RoleNotFoundError: If any code has no matching role.
        """
        result = await self.db.exec(select(Role).where(col(Role.code).in_(codes)))
        by_code = {role.code: role for role in result.all()}

        roles: list[Role] = []
        for code in codes:
            role = by_code.get(code)
            if role is None:
                raise RoleNotFoundError(code)
            roles.append(role)
        return roles

    async def _refresh_profile(self, user: User, profile: ProviderProfile) -> User:
        # Roles and status belong to the local application and are left alone
        user.name = profile.display_name
        user.username = profile.username
        user.avatar = profile.avatar_url
        user.updated_at = get_utc_now()
        self.db.add(user)
        await self.db.commit()
        logger.debug(f"Refreshed profile of user {user.id}")
        return user

    async def _create_user(self, profile: ProviderProfile) -> User:
        roles = await self.get_roles_by_codes(self.settings.default_role_codes)
        now = get_utc_now()
        user = User(
            id=profile.id,
            email=profile.email,
            name=profile.display_name,
            username=profile.username,
            avatar=profile.avatar_url,
            status=UserStatus.ACTIVE,
            verified=True,
            auth_provider=AuthProvider.MATTERMOST,
            external_auth_only=True,
            password_hash=None,
            created_at=now,
            updated_at=now,
        )
        user.roles = roles
        self.db.add(user)
        await self.db.commit()
        logger.info(f"Created user {user.id} from Mattermost profile")
        return user

    async def reconcile(self, profile: ProviderProfile) -> User:
        """Create or update the local user matching a provider profile by email.

        Raises:
            RoleNotFoundError: If a default role for new users does not exist.
            sqlalchemy.exc.SQLAlchemyError: If the store fails.
        """
        existing = await self.get_user_by_email(profile.email)
        if existing:
            return await self._refresh_profile(existing, profile)

        try:
            return await self._create_user(profile)
        except IntegrityError:
            # A concurrent login created the same account first
            await self.db.rollback()
            existing = await self.get_user_by_email(profile.email)
            if existing is None:
                raise
            return await self._refresh_profile(existing, profile)
