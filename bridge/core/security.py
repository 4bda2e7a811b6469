from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from bridge.core.config import Config, get_settings, settings
from bridge.core.db import get_db
from bridge.models.user import User
from bridge.utils.misc import get_utc_now

# HTTP Bearer scheme for FastAPI dependencies
bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_BYTES = 32


def generate_token() -> str:
    """Generate an unguessable URL-safe token.

    Used both as the CSRF state of a login and as the one-time exchange code.
    32 random bytes, 43 characters once encoded.
    """
    return secrets.token_urlsafe(TOKEN_BYTES)


def _get_jwt_secret(config: Config = settings) -> str:
    """Get the JWT secret, generating an ephemeral one for dev if not set.

    WARNING: If not set, an ephemeral secret is generated per-process, which will
    invalidate tokens on restart. Configure JWT_SECRET in production.
    """
    if config.jwt_secret:
        return config.jwt_secret
    secret = secrets.token_urlsafe(32)
    logger.warning(
        "JWT secret not configured. Using ephemeral secret for this process; tokens will invalidate on restart."
    )
    # Cache on settings to keep it stable during process lifetime
    config.jwt_secret = secret
    return secret


def create_access_token(user: User, config: Config = settings) -> str:
    """Create the local auth token returned by the exchange endpoint.

    Claims:
      - sub: local user id
      - email
      - roles: role codes, roles must already be loaded
      - iat / exp
    """
    now = get_utc_now()
    exp = now + timedelta(seconds=config.access_token_ttl_seconds)
    payload: dict[str, Any] = {
        "sub": user.id,
        "email": user.email,
        "roles": [role.code for role in user.roles],
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, _get_jwt_secret(config), algorithm=config.jwt_algorithm)


def decode_access_token(token: str, config: Config = settings) -> dict[str, Any]:
    """Decode and validate an access token, returning claims or raising.

    Raises jwt.InvalidTokenError (caught by caller) on invalid token.
    """
    return jwt.decode(token, _get_jwt_secret(config), algorithms=[config.jwt_algorithm])


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[Config, Depends(get_settings)],
) -> User:
    """Resolve the current User from Authorization: Bearer <jwt>.

    - 401 if missing/invalid
    - 404 if user not found (e.g., deleted)
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        claims = decode_access_token(credentials.credentials, config)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token") from None

    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    result = await db.exec(
        select(User).where(User.id == sub).options(selectinload(User.roles))  # pyright: ignore[reportArgumentType]
    )
    user = result.first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
