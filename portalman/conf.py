"""
Portalman configuration.

Usage in settings.py:
    PORTALMAN = {
        "DEFAULT_COUNTRY_CODE": "+44",
        "SMS_BACKEND": "portalman.delivery.twilio.TwilioSmsSender",
        "TWILIO_ACCOUNT_SID": "AC...",
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class PortalmanSettings:
    """Portalman configuration settings."""

    # Phone normalization for numbers without an international prefix
    DEFAULT_COUNTRY_CODE: str = "+44"

    # One-time code lifetimes (seconds)
    SMS_CODE_TTL: int = 300
    EMAIL_CODE_TTL: int = 600

    # Minimum gap between two issued codes for the same customer and channel
    ISSUE_COOLDOWN: int = 60

    # Wrong submissions tolerated before a challenge is locked
    MAX_CODE_ATTEMPTS: int = 5

    # Portal session lifetime (seconds)
    SESSION_TTL: int = 24 * 60 * 60

    # Delivery backends (dotted paths)
    SMS_BACKEND: str = "portalman.delivery.console.LogSmsSender"
    EMAIL_BACKEND: str = "portalman.delivery.mail.DjangoMailSender"
    FROM_EMAIL: str = ""

    # Store link appended to SMS messages ("" = no link)
    STORE_BASE_URL: str = ""

    # Expired challenge cleanup
    CHALLENGE_CLEANUP_DAYS: int = 7

    # Twilio credentials (TwilioSmsSender)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_FROM_NUMBER: str = ""


def get_portalman_settings() -> PortalmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "PORTALMAN", {})
    return PortalmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_portalman_settings(), name)


portalman_settings = _LazySettings()
