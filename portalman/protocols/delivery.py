"""Delivery protocols for one-time codes."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single send."""

    success: bool
    message_id: str | None = None
    error: str | None = None


@runtime_checkable
class SmsSender(Protocol):
    """
    Protocol for SMS providers.

    Configuration in settings.py:
        PORTALMAN = {
            "SMS_BACKEND": "portalman.delivery.twilio.TwilioSmsSender",
        }
    """

    def send_sms(self, to: str, body: str) -> DeliveryResult:
        """
        Send one text message.

        Args:
            to: Destination in E.164
            body: Message text

        Returns:
            DeliveryResult (success=False instead of raising on provider errors)
        """
        ...


@runtime_checkable
class EmailSender(Protocol):
    """Protocol for email delivery."""

    def send_email(
        self,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
    ) -> DeliveryResult:
        """Send one email."""
        ...
