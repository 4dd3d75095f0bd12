"""Portalman protocols."""

from portalman.protocols.delivery import (
    DeliveryResult,
    EmailSender,
    SmsSender,
)
from portalman.protocols.portal import (
    CodeIssue,
    CustomerRecord,
    PortalBackend,
    RegistrationForm,
    WholesalerProfile,
)

__all__ = [
    # Delivery
    "DeliveryResult",
    "EmailSender",
    "SmsSender",
    # Portal client
    "CodeIssue",
    "CustomerRecord",
    "PortalBackend",
    "RegistrationForm",
    "WholesalerProfile",
]
