from fastapi import HTTPException, status


class AuthError(HTTPException):
    """A terminal failure of the login handshake or code redemption.

    Rendered as `{"success": false, "error": detail}`. The detail is fixed per
    subclass so responses never carry tokens or internal identifiers.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "authentication failed"

    def __init__(self) -> None:
        super().__init__(status_code=type(self).status_code, detail=type(self).detail)


class InvalidStateError(AuthError):
    detail = "invalid state"


class InvalidRequestError(AuthError):
    detail = "invalid request"


class TokenExchangeFailedError(AuthError):
    detail = "failed to exchange authorization code"


class ProfileFetchFailedError(AuthError):
    detail = "failed to get user information"


class ReconciliationFailedError(AuthError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "failed to create user account"


class SessionIssueFailedError(AuthError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "failed to create oauth session"


class InvalidCodeError(AuthError):
    detail = "invalid code"


class CodeExpiredError(AuthError):
    detail = "code expired"


class UserNotFoundError(AuthError):
    detail = "user not found"


class ProviderError(Exception):
    """The identity provider could not complete a request."""


class ProviderAPIError(ProviderError):
    def __init__(self, status_code: int, endpoint: str) -> None:
        super().__init__(f"{endpoint} responded with status {status_code}")
        self.status_code = status_code
        self.endpoint = endpoint


class RoleNotFoundError(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(f"Role not found: {code}")
        self.code = code
