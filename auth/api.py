"""HTTP routes for OAuth account linking and password recovery.

Endpoints are plain `def` so FastAPI runs the blocking service calls in its
worker thread pool. Service exceptions propagate to the handlers registered
in api/errors.py.
"""

import ipaddress

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse

from api.base import success_response, error_response, ErrorCodes
from auth.oauth_service import OAuthService
from auth.recovery import PasswordRecoveryService
from auth.security_middleware import SESSION_COOKIE, extract_session_token
from auth.session import SessionManager
from auth.types import ForgotPasswordRequest, ResetPasswordRequest


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _not_authenticated(request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=error_response(
            ErrorCodes.NOT_AUTHENTICATED,
            "Authentication required",
            _request_id(request),
        ).model_dump(mode="json"),
    )


def create_auth_router(
    oauth_service: OAuthService,
    recovery_service: PasswordRecoveryService,
    session_manager: SessionManager,
) -> APIRouter:
    """Create auth router with injected services."""
    router = APIRouter(tags=["auth"])

    @router.get("/oauth/providers")
    def provider_availability(request: Request):
        """Which OAuth providers the login screen may offer."""
        providers = oauth_service.get_provider_availability()
        return success_response(
            [p.model_dump(mode="json") for p in providers],
            _request_id(request),
        )

    @router.get("/oauth/linked")
    def linked_providers(request: Request):
        account_id = getattr(request.state, "account_id", None)
        if account_id is None:
            return _not_authenticated(request)
        linked = oauth_service.get_linked_providers(account_id)
        return success_response(
            [link.model_dump(mode="json") for link in linked],
            _request_id(request),
        )

    @router.delete("/oauth/linked/{provider}")
    def unlink_provider(request: Request, provider: str):
        account_id = getattr(request.state, "account_id", None)
        if account_id is None:
            return _not_authenticated(request)
        result = oauth_service.unlink_provider(
            account_id,
            provider,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response(result, _request_id(request))

    @router.post("/password/forgot")
    def forgot_password(request: Request, body: ForgotPasswordRequest):
        """Request a reset link. Same answer whether or not the email exists."""
        result = recovery_service.forgot(
            email=body.email,
            requester_ip=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response(result.model_dump(exclude_none=True), _request_id(request))

    @router.get("/password/validate")
    def validate_reset_token(request: Request, token: str = Query("")):
        result = recovery_service.validate(token)
        return success_response(result.model_dump(exclude_none=True), _request_id(request))

    @router.post("/password/reset")
    def reset_password(request: Request, body: ResetPasswordRequest):
        result = recovery_service.reset(
            token=body.token,
            password=body.password,
            confirm=body.confirm,
        )
        return success_response(result, _request_id(request))

    @router.post("/logout")
    def logout(request: Request, response: Response):
        """Revoke the current session and clear the cookie."""
        token = extract_session_token(request)
        if token:
            session_manager.revoke_session(token)
        response.delete_cookie(key=SESSION_COOKIE)
        return success_response({"message": "Logged out successfully"}, _request_id(request))

    @router.get("/me")
    def current_account(request: Request):
        account_id = getattr(request.state, "account_id", None)
        if account_id is None:
            return _not_authenticated(request)
        return success_response({"account_id": str(account_id)}, _request_id(request))

    return router
