"""Portal backend protocol - what the client controller needs from the server."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class WholesalerProfile:
    """Public wholesaler data for portal branding."""

    id: str
    business_name: str
    logo_url: str | None = None


@dataclass(frozen=True)
class CustomerRecord:
    """Customer identity as seen by the portal (contacts masked)."""

    id: str
    name: str
    phone: str | None = None
    email: str | None = None
    has_email: bool = False
    business_name: str | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "CustomerRecord":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            phone=data.get("phone"),
            email=data.get("email"),
            has_email=bool(data.get("hasEmail", data.get("email"))),
            business_name=data.get("businessName"),
        )


@dataclass(frozen=True)
class CodeIssue:
    """Server acknowledgement of an issued code."""

    expires_at: datetime
    expires_in: int | None = None


@dataclass(frozen=True)
class RegistrationForm:
    """Registration request fields entered by the customer."""

    customer_name: str
    customer_phone: str
    customer_email: str = ""
    business_name: str = ""
    request_message: str = ""


@runtime_checkable
class PortalBackend(Protocol):
    """
    Protocol for the portal's server endpoints.

    Every method raises portalman.exceptions.PortalError on failure;
    the error kind (never the message) drives the controller.
    Implemented by portalman.client.http.HttpPortalBackend.
    """

    def resolve_wholesaler(self, wholesaler_id: str) -> WholesalerProfile | None:
        """Return the wholesaler's profile, or None if unknown."""
        ...

    def check_session(self, wholesaler_id: str) -> CustomerRecord | None:
        """Return the customer of an existing session, or None."""
        ...

    def logout(self, wholesaler_id: str) -> None:
        """Drop the session for this wholesaler."""
        ...

    def match_phone(self, wholesaler_id: str, last_four: str) -> CustomerRecord:
        """Find the unique customer whose phone ends in ``last_four``."""
        ...

    def request_sms(self, wholesaler_id: str, last_four: str) -> CodeIssue:
        """Issue an SMS code to the matched customer."""
        ...

    def verify_sms(self, wholesaler_id: str, last_four: str, code: str) -> CustomerRecord:
        """Verify an SMS code; opens the session on success."""
        ...

    def send_email_code(self, customer_id: str) -> CodeIssue:
        """Issue an email code to the customer's email on file."""
        ...

    def verify_email_code(self, customer_id: str, code: str) -> CustomerRecord:
        """Verify an email code; opens the session on success."""
        ...

    def request_access(self, wholesaler_id: str, form: RegistrationForm) -> str:
        """Submit a registration request; returns the server's message."""
        ...
