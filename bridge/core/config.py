from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    db_url: str
    env: Literal["prod", "dev"] = "prod"
    version: str = "unknown"

    # Frontend that receives the exchange code
    app_url: str

    # Mattermost
    mattermost_client_id: str
    mattermost_client_secret: str
    mattermost_server_url: str
    mattermost_redirect_uri: str
    mattermost_scope: str = "read"
    provider_timeout_seconds: float = 10.0

    # OAuth state cookie
    oauth_state_cookie_name: str = "oauth_state"
    oauth_state_cookie_path: str = "/api/auth"
    oauth_state_cookie_max_age_seconds: int = 10 * 60  # 10 minutes

    # Exchange codes
    exchange_code_ttl_seconds: int = 2 * 60  # 2 minutes

    # Roles assigned to users created from a provider profile
    default_role_codes: list[str] = ["member"]

    # JWT & token settings
    # IMPORTANT: set in environment for production
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 7 * 24 * 60 * 60  # 7 days

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"

    @property
    def frontend_callback_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/oauth/callback"


load_dotenv()
settings = Config()  # pyright: ignore[reportCallIssue]


def get_settings() -> Config:
    return settings
