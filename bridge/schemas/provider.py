from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class OAuthToken(BaseModel):
    """Token endpoint response of the provider's authorization code grant."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None


class ProviderProfile(BaseModel):
    """Subset of Mattermost's `/api/v4/users/me` payload."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    nickname: str = ""
    avatar_url: str = ""
    locale: str = ""
    create_at: int = 0
    update_at: int = 0
    delete_at: int = 0

    @property
    def display_name(self) -> str:
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.username
