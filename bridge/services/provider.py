from __future__ import annotations

from typing import Annotated
from urllib.parse import urlencode

import httpx
from fastapi import Depends
from loguru import logger
from pydantic import ValidationError

from bridge.core.config import Config, get_settings
from bridge.core.exceptions import ProviderAPIError, ProviderError
from bridge.schemas.provider import OAuthToken, ProviderProfile


class MattermostClient:
    """Adapter for the Mattermost OAuth2 service and its REST API.

    Every call is a single attempt with a bounded timeout; callers decide what a
    failure means for the request.
    """

    def __init__(
        self, settings: Config, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.settings = settings
        self.base_url = settings.mattermost_server_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.provider_timeout_seconds, transport=self._transport
        )

    def authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.settings.mattermost_client_id,
            "redirect_uri": self.settings.mattermost_redirect_uri,
            "response_type": "code",
            "scope": self.settings.mattermost_scope,
            "state": state,
        }
        return f"{self.base_url}/oauth/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthToken:
        """Exchange an authorization code for a provider access token.

        Raises:
            ProviderAPIError: If the token endpoint does not answer 200.
            ProviderError: If the request fails or the response carries no access token.
        """
        data = {
            "grant_type": "authorization_code",
            "client_id": self.settings.mattermost_client_id,
            "client_secret": self.settings.mattermost_client_secret,
            "code": code,
            "redirect_uri": self.settings.mattermost_redirect_uri,
        }

        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/oauth/access_token",
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Token request failed: {e}") from e

        if resp.status_code != 200:
            logger.error(f"Mattermost token exchange failed: {resp.status_code}")
            raise ProviderAPIError(resp.status_code, "token")

        try:
            return OAuthToken.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ProviderError("Token response did not contain an access token") from e

    async def fetch_profile(self, access_token: str) -> ProviderProfile:
        """Fetch the profile of the user the access token belongs to.

        Raises:
            ProviderAPIError: If the API does not answer 200.
            ProviderError: If the request fails or the payload is not a user.
        """
        try:
            async with self._client() as client:
                resp = await client.get(
                    f"{self.base_url}/api/v4/users/me",
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Profile request failed: {e}") from e

        if resp.status_code != 200:
            logger.error(f"Mattermost /users/me failed: {resp.status_code}")
            raise ProviderAPIError(resp.status_code, "users/me")

        try:
            return ProviderProfile.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ProviderError("Profile response is not a valid user") from e


def get_provider_client(settings: Annotated[Config, Depends(get_settings)]) -> MattermostClient:
    return MattermostClient(settings)
