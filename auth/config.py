"""Identity and recovery configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Identity and recovery configuration.

    Durations are in their natural units (minutes for token lifetimes and
    rate windows, hours for sessions, days for retention).
    """

    # Password recovery
    reset_token_ttl_minutes: int = Field(
        default=30,
        description="How long a password reset token remains valid",
        ge=5,
        le=120,
    )
    reset_rate_window_minutes: int = Field(
        default=60,
        description="Trailing window used for reset request rate limits",
        ge=5,
        le=1440,
    )
    reset_max_per_email: int = Field(
        default=3,
        description="Max reset requests per email per window",
        ge=1,
        le=20,
    )
    reset_max_per_ip: int = Field(
        default=8,
        description="Max reset requests per requester IP per window",
        ge=1,
        le=100,
    )
    reset_used_retention_days: int = Field(
        default=7,
        description="Used reset requests are deleted after this many days",
        ge=1,
        le=90,
    )

    # Password policy
    password_min_length: int = Field(
        default=10,
        description="Minimum length for a new password",
        ge=8,
        le=128,
    )

    # Session settings
    session_expiry_hours: int = Field(
        default=2160,  # 90 days
        description="Session lifetime in hours",
        ge=1,
        le=2160,
    )

    # Provisioning
    default_role: str = Field(
        default="viewer",
        description="Role given to auto-provisioned OAuth accounts (lowest privilege)",
    )

    # Application
    environment: str = Field(
        default="development",
        description="Deployment environment; 'production' never exposes reset tokens",
    )
    app_base_url: str = Field(
        default="http://localhost:5173",
        description="Web client base URL for reset link generation",
    )
    app_name: str = Field(
        default="CRM",
        description="Application name for emails",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"
