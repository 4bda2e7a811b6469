from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from bridge.core.config import Config, get_settings
from bridge.core.exceptions import InvalidRequestError
from bridge.core.security import get_current_user
from bridge.models.user import User
from bridge.schemas.auth import (
    AuthErrorResponse,
    ExchangeRequest,
    ExchangeResponse,
    MeResponse,
    UserSummary,
)
from bridge.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": AuthErrorResponse},
    500: {"model": AuthErrorResponse},
}


def _set_state_cookie(response: RedirectResponse, settings: Config, state: str) -> None:
    response.set_cookie(
        key=settings.oauth_state_cookie_name,
        value=state,
        max_age=settings.oauth_state_cookie_max_age_seconds,
        path=settings.oauth_state_cookie_path,
        httponly=True,
        secure=True,
        samesite="lax",
    )


def _clear_state_cookie(response: RedirectResponse, settings: Config) -> None:
    response.delete_cookie(
        key=settings.oauth_state_cookie_name,
        path=settings.oauth_state_cookie_path,
        httponly=True,
        secure=True,
        samesite="lax",
    )


@router.get("/login", response_class=RedirectResponse, status_code=302)
async def login(
    service: Annotated[AuthService, Depends()],
    settings: Annotated[Config, Depends(get_settings)],
) -> RedirectResponse:
    """Redirect the browser to Mattermost with a fresh CSRF state bound by cookie."""
    state, url = service.start_login()
    response = RedirectResponse(url, status_code=302)
    _set_state_cookie(response, settings, state)
    return response


@router.get(
    "/callback", response_class=RedirectResponse, status_code=302, responses=ERROR_RESPONSES
)
async def callback(
    request: Request,
    service: Annotated[AuthService, Depends()],
    settings: Annotated[Config, Depends(get_settings)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    redirect_url = await service.complete_login(
        code=code,
        state=state,
        cookie_state=request.cookies.get(settings.oauth_state_cookie_name),
        provider_error=error,
    )
    response = RedirectResponse(redirect_url, status_code=302)
    _clear_state_cookie(response, settings)
    return response


@router.post(
    "/exchange",
    responses={400: {"model": AuthErrorResponse}},
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": ExchangeRequest.model_json_schema()}},
            "required": True,
        }
    },
)
async def exchange(
    request: Request, service: Annotated[AuthService, Depends()]
) -> ExchangeResponse:
    # Parsed here so malformed bodies get the same error shape as bad codes
    try:
        body = ExchangeRequest.model_validate_json(await request.body())
    except ValidationError:
        raise InvalidRequestError from None
    return await service.redeem(body.code)


@router.get("/me")
async def me(user: Annotated[User, Depends(get_current_user)]) -> MeResponse:
    return MeResponse(user=UserSummary.from_user(user))
