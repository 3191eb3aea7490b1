"""Reset token delivery.

EmailResetDelivery sends the reset link through the email gateway.
DevResetDelivery performs no I/O and hands the raw token back so local
development can finish the flow without a mailbox.
"""

import logging
from urllib.parse import quote

from auth.config import AuthConfig
from auth.types import DeliveryResult
from clients.email_client import EmailGatewayClient

logger = logging.getLogger(__name__)


def build_reset_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/reset-password?token={quote(token, safe='')}"


class EmailResetDelivery:
    """Deliver reset links by email. Never returns the token."""

    def __init__(self, email_client: EmailGatewayClient, config: AuthConfig):
        self._email_client = email_client
        self._config = config

    def deliver(self, email: str, token: str) -> DeliveryResult:
        """Send the reset link.

        Raises:
            EmailGatewayError: If the gateway rejects or cannot be reached.
        """
        if not self._config.app_base_url:
            logger.warning("app_base_url not configured; reset email skipped")
            return DeliveryResult()

        self._email_client.send_password_reset(
            email=email,
            reset_url=build_reset_url(self._config.app_base_url, token),
            app_name=self._config.app_name,
        )
        return DeliveryResult()


class DevResetDelivery:
    """Passthrough delivery for non-production environments."""

    def deliver(self, email: str, token: str) -> DeliveryResult:
        logger.info(f"Dev reset delivery for {email}; token returned inline")
        return DeliveryResult(dev_token=token)
