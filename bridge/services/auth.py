from __future__ import annotations

import secrets
from typing import Annotated
from urllib.parse import quote

from fastapi import Depends
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from bridge.core.config import Config, get_settings
from bridge.core.exceptions import (
    CodeExpiredError,
    InvalidCodeError,
    InvalidStateError,
    ProfileFetchFailedError,
    ProviderError,
    ReconciliationFailedError,
    RoleNotFoundError,
    SessionIssueFailedError,
    TokenExchangeFailedError,
    UserNotFoundError,
)
from bridge.core.security import create_access_token, generate_token
from bridge.schemas.auth import ExchangeResponse, UserSummary
from bridge.services.exchange_session import ExchangeSessionService
from bridge.services.identity import IdentityService
from bridge.services.provider import MattermostClient, get_provider_client


def _mask(token: str) -> str:
    return f"{token[:6]}..."


class AuthService:
    """Drives the Mattermost login handshake and the exchange code handoff.

    The provider's access token never leaves this service. The browser only ever
    sees the CSRF state and a short-lived, single-use exchange code.
    """

    def __init__(
        self,
        provider: Annotated[MattermostClient, Depends(get_provider_client)],
        identities: Annotated[IdentityService, Depends()],
        sessions: Annotated[ExchangeSessionService, Depends()],
        settings: Annotated[Config, Depends(get_settings)],
    ) -> None:
        self.provider = provider
        self.identities = identities
        self.sessions = sessions
        self.settings = settings

    def start_login(self) -> tuple[str, str]:
        """Create a CSRF state and the provider URL to send the browser to.

        Nothing is stored server-side; the caller binds the state to the browser
        with a cookie.

        Returns:
            The state and the authorization URL.
        """
        state = generate_token()
        return state, self.provider.authorize_url(state)

    async def complete_login(
        self,
        *,
        code: str | None,
        state: str | None,
        cookie_state: str | None,
        provider_error: str | None = None,
    ) -> str:
        """Finish the provider handshake and issue (or replay) an exchange code.

        Steps run strictly in order and each failure ends the request.

        Returns:
            The frontend URL to redirect the browser to.
        """
        if not (
            state
            and cookie_state
            and secrets.compare_digest(state.encode(), cookie_state.encode())
        ):
            logger.warning("OAuth callback state does not match the state cookie")
            raise InvalidStateError

        if provider_error or not code:
            logger.warning(f"Mattermost returned no authorization code: {provider_error}")
            raise TokenExchangeFailedError

        try:
            token = await self.provider.exchange_code(code)
        except ProviderError as e:
            logger.error(f"Token exchange failed: {e}")
            raise TokenExchangeFailedError from e

        try:
            profile = await self.provider.fetch_profile(token.access_token)
        except ProviderError as e:
            logger.error(f"Failed to get Mattermost user: {e}")
            raise ProfileFetchFailedError from e

        try:
            user = await self.identities.reconcile(profile)
        except (RoleNotFoundError, SQLAlchemyError) as e:
            logger.exception(f"Failed to reconcile Mattermost user {profile.id}: {e}")
            raise ReconciliationFailedError from e
        user_id = user.id

        try:
            session = await self.sessions.find_by_state(state)
            if session is not None:
                logger.info(f"Replaying exchange code for duplicate callback of user {user_id}")
            else:
                session, _ = await self.sessions.create_or_get(user_id, state)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create exchange session for user {user_id}: {e}")
            raise SessionIssueFailedError from e

        logger.info(f"User {user_id} signed in with Mattermost")
        return f"{self.settings.frontend_callback_url}?code={quote(session.code, safe='')}"

    async def redeem(self, code: str) -> ExchangeResponse:
        """Trade an exchange code for a local auth token, exactly once."""
        session = await self.sessions.find_unused_by_code(code)
        if session is None:
            logger.warning(f"Exchange attempted with unknown or used code {_mask(code)}")
            raise InvalidCodeError

        if session.is_expired():
            logger.warning(f"Exchange attempted with expired code {_mask(code)}")
            raise CodeExpiredError

        user = await self.identities.get_user(session.user_id)
        if user is None:
            raise UserNotFoundError

        token = create_access_token(user, self.settings)

        if not await self.sessions.mark_used(session):
            logger.warning(f"Exchange code {_mask(code)} was redeemed concurrently")
            raise InvalidCodeError

        summary = UserSummary.from_user(user)
        logger.info(f"Exchange code redeemed for user {user.id}")
        return ExchangeResponse(user=summary, roles=summary.roles, token=token)
