"""Global exception handlers for FastAPI.

Maps the identity exception families to HTTP statuses:
recovery validation -> 400, other unauthorized -> 401 (403 for disabled
accounts), conflict -> 409, throttled -> 429.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    AccountDisabledError,
    ConflictError,
    ExpiredTokenError,
    LastAuthMethodError,
    PasswordMismatchError,
    RecoveryValidationError,
    SessionExpiredError,
    SessionRevokedError,
    ThrottledError,
    UnauthorizedError,
    WeakPasswordError,
)

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _json(request: Request, status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response(code, message, _request_id(request)).model_dump(mode="json"),
    )


def _recovery_code(exc: RecoveryValidationError) -> str:
    if isinstance(exc, WeakPasswordError):
        return ErrorCodes.WEAK_PASSWORD
    if isinstance(exc, PasswordMismatchError):
        return ErrorCodes.PASSWORD_MISMATCH
    if isinstance(exc, ExpiredTokenError):
        return ErrorCodes.EXPIRED_TOKEN
    return ErrorCodes.INVALID_TOKEN


def _unauthorized_code(exc: UnauthorizedError) -> str:
    if isinstance(exc, SessionExpiredError):
        return ErrorCodes.SESSION_EXPIRED
    if isinstance(exc, SessionRevokedError):
        return ErrorCodes.SESSION_REVOKED
    return ErrorCodes.NOT_AUTHENTICATED


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(RecoveryValidationError)
    async def recovery_error_handler(request: Request, exc: RecoveryValidationError):
        return _json(request, 400, _recovery_code(exc), str(exc))

    @app.exception_handler(AccountDisabledError)
    async def disabled_error_handler(request: Request, exc: AccountDisabledError):
        return _json(request, 403, ErrorCodes.ACCOUNT_DISABLED, str(exc))

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_error_handler(request: Request, exc: UnauthorizedError):
        return _json(request, 401, _unauthorized_code(exc), str(exc))

    @app.exception_handler(ConflictError)
    async def conflict_error_handler(request: Request, exc: ConflictError):
        code = ErrorCodes.LAST_AUTH_METHOD if isinstance(exc, LastAuthMethodError) else ErrorCodes.ALREADY_EXISTS
        return _json(request, 409, code, str(exc))

    @app.exception_handler(ThrottledError)
    async def throttled_error_handler(request: Request, exc: ThrottledError):
        return _json(
            request,
            429,
            ErrorCodes.RATE_LIMITED,
            f"Too many requests. Please wait {exc.retry_after_seconds} seconds.",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
