"""
Portalman Gates - Validation rules.

G1: LastFourFormat - Phone fragment is exactly 4 ASCII digits
G2: CodeFormat - One-time code is exactly 6 ASCII digits
G3: IssueCooldown - No new code for (customer, channel) within ISSUE_COOLDOWN
G4: UniqueMatch - A phone fragment resolves to exactly one customer
G5: RegistrationPending - Only pending requests can be approved/rejected

Server-side gates re-validate everything the portal sanitizes; client
input is never trusted.
"""

import logging
import re
from dataclasses import dataclass
from datetime import timedelta

from django.utils import timezone

from portalman.exceptions import ErrorKind, PortalError
from portalman.utils import CODE_LENGTH, LAST_FOUR_LENGTH

logger = logging.getLogger(__name__)


class GateError(PortalError):
    """Gate validation error."""

    def __init__(
        self,
        gate_name: str,
        code: ErrorKind | str,
        message: str | None = None,
        details: dict | None = None,
    ):
        self.gate_name = gate_name
        self.details = details or {}
        super().__init__(code, message, **self.details)

    def __str__(self):
        return f"[{self.gate_name}] {self.message}"


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


_LAST_FOUR_RE = re.compile(rf"[0-9]{{{LAST_FOUR_LENGTH}}}")
_CODE_RE = re.compile(rf"[0-9]{{{CODE_LENGTH}}}")


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Portalman validation gates."""

    # =========================================================================
    # G1: Last Four Format
    # =========================================================================

    @classmethod
    def last_four_format(cls, value) -> GateResult:
        """
        G1: Phone fragment must be exactly 4 ASCII digits.

        Raises:
            GateError: If value is missing, too short/long or not digits
        """
        if not isinstance(value, str) or not _LAST_FOUR_RE.fullmatch(value):
            raise GateError(
                "G1_LastFourFormat",
                ErrorKind.VALIDATION,
                "Please enter exactly 4 digits.",
            )
        return GateResult(True, "G1_LastFourFormat")

    @classmethod
    def check_last_four_format(cls, value) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.last_four_format(value)
            return True
        except GateError:
            return False

    # =========================================================================
    # G2: Code Format
    # =========================================================================

    @classmethod
    def code_format(cls, value) -> GateResult:
        """
        G2: Verification code must be exactly 6 ASCII digits.

        Raises:
            GateError: If value is not a 6-digit string
        """
        if not isinstance(value, str) or not _CODE_RE.fullmatch(value):
            raise GateError(
                "G2_CodeFormat",
                ErrorKind.VALIDATION,
                "Please enter the 6-digit code.",
            )
        return GateResult(True, "G2_CodeFormat")

    @classmethod
    def check_code_format(cls, value) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.code_format(value)
            return True
        except GateError:
            return False

    # =========================================================================
    # G3: Issue Cooldown
    # =========================================================================

    @classmethod
    def issue_cooldown(cls, customer, channel: str, now=None) -> GateResult:
        """
        G3: A customer cannot receive two codes on the same channel
        within ISSUE_COOLDOWN seconds.

        Args:
            customer: Customer receiving the code
            channel: "sms" or "email"
            now: Reference time (defaults to timezone.now())

        Raises:
            GateError: rate_limited, with retryAfter and the active
                challenge's expiresAt/expiresIn when one is still running
        """
        from portalman.conf import portalman_settings
        from portalman.models import VerificationChallenge

        now = now or timezone.now()
        cooldown = timedelta(seconds=portalman_settings.ISSUE_COOLDOWN)

        latest = (
            VerificationChallenge.objects.filter(customer=customer, channel=channel)
            .order_by("-created_at")
            .first()
        )
        if latest and now - latest.created_at < cooldown:
            retry_after = int((latest.created_at + cooldown - now).total_seconds()) + 1
            details = {"retryAfter": retry_after}
            if latest.is_active(now):
                details["expiresAt"] = latest.expires_at.isoformat()
                details["expiresIn"] = latest.seconds_remaining(now)
            raise GateError(
                "G3_IssueCooldown",
                ErrorKind.RATE_LIMITED,
                details=details,
            )

        return GateResult(True, "G3_IssueCooldown")

    @classmethod
    def check_issue_cooldown(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.issue_cooldown(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G4: Unique Match
    # =========================================================================

    @classmethod
    def unique_match(cls, matches: list, wholesaler_code: str = "") -> GateResult:
        """
        G4: A phone fragment must resolve to exactly one customer.

        Args:
            matches: Candidate customers (callers fetch at most 2)
            wholesaler_code: For logging only

        Raises:
            GateError: not_found for zero matches, ambiguous for several
        """
        if not matches:
            raise GateError("G4_UniqueMatch", ErrorKind.NOT_FOUND)

        if len(matches) > 1:
            logger.warning(
                "G4_UniqueMatch: %d customers of wholesaler %s share a phone suffix",
                len(matches),
                wholesaler_code,
            )
            raise GateError("G4_UniqueMatch", ErrorKind.AMBIGUOUS)

        return GateResult(True, "G4_UniqueMatch")

    # =========================================================================
    # G5: Registration Pending
    # =========================================================================

    ALLOWED_RESPONSES = {"approve", "reject"}

    @classmethod
    def registration_pending(cls, request, action: str) -> GateResult:
        """
        G5: Only pending requests can be answered, with approve/reject.

        Raises:
            GateError: If action is unknown or request already answered
        """
        if action not in cls.ALLOWED_RESPONSES:
            raise GateError(
                "G5_RegistrationPending",
                ErrorKind.VALIDATION,
                f"Unknown action: {action}",
                {"allowed": sorted(cls.ALLOWED_RESPONSES)},
            )

        if not request.is_pending:
            raise GateError(
                "G5_RegistrationPending",
                ErrorKind.VALIDATION,
                f"Request already {request.status}.",
                {"status": request.status},
            )

        return GateResult(True, "G5_RegistrationPending")
