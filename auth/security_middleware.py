"""Security middleware for FastAPI - session validation on protected routes."""

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.session import SessionManager
from auth.exceptions import SessionExpiredError, SessionRevokedError
from api.base import error_response, ErrorCodes

SESSION_COOKIE = "session_token"


def extract_session_token(request: Request) -> str | None:
    """Bearer token from Authorization header, else the session cookie."""
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(SESSION_COOKIE) or None


class AuthMiddleware(BaseHTTPMiddleware):
    """Validates the session and exposes the account id on request.state.

    For protected routes:
    1. Extracts the session token (Bearer header or cookie)
    2. Validates it via SessionManager, including the token_version check
    3. Sets request.state.account_id and request.state.session

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/oauth/providers",
        "/auth/password/",
        "/auth/logout",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public_path(self, path: str) -> bool:
        return any(path == p or path.startswith(p) for p in self.PUBLIC_PATHS)

    def _reject(self, request: Request, code: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=error_response(
                code, message, getattr(request.state, "request_id", None)
            ).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        token = extract_session_token(request)
        if not token:
            return self._reject(request, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            # Touches PostgreSQL and Valkey; keep it off the event loop
            session = await run_in_threadpool(self._session_manager.validate_session, token)
        except SessionExpiredError:
            return self._reject(request, ErrorCodes.SESSION_EXPIRED, "Session has expired")
        except SessionRevokedError:
            return self._reject(request, ErrorCodes.SESSION_REVOKED, "Session has been revoked")

        request.state.account_id = session.account_id
        request.state.session = session
        return await call_next(request)
