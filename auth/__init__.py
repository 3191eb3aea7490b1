"""OAuth identity resolution and password recovery."""

from auth.exceptions import (
    AuthError,
    UnauthorizedError,
    AccountDisabledError,
    InvalidAccountError,
    UnsupportedProviderError,
    MissingEmailError,
    MissingProviderIdError,
    SessionExpiredError,
    SessionRevokedError,
    RecoveryValidationError,
    InvalidTokenError,
    ExpiredTokenError,
    WeakPasswordError,
    PasswordMismatchError,
    ConflictError,
    DuplicateEmailError,
    LastAuthMethodError,
    UsernameTakenError,
    ThrottledError,
)
from auth.types import (
    Account,
    AccountView,
    AuthenticatedUser,
    OAuthLink,
    OAuthProfile,
    ResetRequest,
    Session,
)
from auth.config import AuthConfig
from auth.profile import normalize_profile
from auth.database import AccountRepository
from auth.recovery_store import RecoveryTokenStore
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.delivery import EmailResetDelivery, DevResetDelivery
from auth.oauth_service import OAuthService
from auth.recovery import PasswordRecoveryService
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
