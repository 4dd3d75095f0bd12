"""Portalman exceptions.

Importable without Django: shared by the server app and portalman.client.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Error kinds the portal flow branches on."""

    TRANSPORT = "transport"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    INVALID_CODE = "invalid_code"
    EXPIRED_CODE = "expired_code"
    DELIVERY_FAILED = "delivery_failed"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    UNKNOWN_WHOLESALER = "unknown_wholesaler"


class PortalError(Exception):
    """
    Structured exception for portal authentication.

    Usage:
        try:
            customer = phone_match.match("W1", "4321")
        except PortalError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                offer_registration()
    """

    _default_messages = {
        ErrorKind.TRANSPORT: "Connection error. Please try again.",
        ErrorKind.NOT_FOUND: "No customer account found with those digits.",
        ErrorKind.AMBIGUOUS: (
            "We could not identify your account from those digits. "
            "Please contact the wholesaler directly."
        ),
        ErrorKind.INVALID_CODE: "Invalid verification code.",
        ErrorKind.EXPIRED_CODE: "Verification code expired. Please request a new one.",
        ErrorKind.DELIVERY_FAILED: "We could not deliver your verification code.",
        ErrorKind.VALIDATION: "Invalid input.",
        ErrorKind.RATE_LIMITED: "A code was sent recently. Please wait before asking again.",
        ErrorKind.UNKNOWN_WHOLESALER: "Wholesaler not found.",
    }

    def __init__(self, code: ErrorKind | str, message: str | None = None, **data):
        self.kind = ErrorKind(code)
        self.code = self.kind.value
        self.message = message or self._default_messages[self.kind]
        self.data = data
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"error": self.message, "code": self.code, **self.data}
