"""
Portal controller state, events and commands.

Everything here is an immutable value. Events are fed to
portalman.client.machine.transition, which returns the next state and
the commands the controller must execute. Times are seconds on the
controller's clock (time.monotonic by default).
"""

from dataclasses import dataclass, field, replace
from enum import Enum

from portalman.exceptions import ErrorKind, PortalError
from portalman.protocols.portal import (
    CodeIssue,
    CustomerRecord,
    RegistrationForm,
    WholesalerProfile,
)

# Challenge lifetimes as issued by the server, used when the server
# does not report the remaining seconds.
SMS_TTL = 300
EMAIL_TTL = 600

# Resend stays disabled this long after an issuance.
RESEND_AFTER = 60

# A second issuance for the same (customer, channel) inside this window
# is dropped, whatever triggered it.
SUPPRESS_WINDOW = 30

DEFAULT_DISPLAY_NAME = "Our Store"


class Step(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    PHONE_ENTRY = "phone_entry"
    VERIFYING = "verifying"
    CODE_ENTRY = "code_entry"
    AUTHENTICATED = "authenticated"
    REGISTRATION_OFFERED = "registration_offered"
    REGISTRATION_SUBMITTED = "registration_submitted"


class CodeChannel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


class ChannelMode(str, Enum):
    """Channels offered on the code entry step."""

    SMS = "sms"
    BOTH = "both"


TTL_BY_CHANNEL = {
    CodeChannel.SMS: SMS_TTL,
    CodeChannel.EMAIL: EMAIL_TTL,
}


@dataclass(frozen=True)
class PortalFault:
    """Error shown to the customer. Control flow uses ``kind`` only."""

    kind: ErrorKind
    message: str
    # Server details such as retryAfter / expiresIn on rate_limited
    data: dict = field(default_factory=dict, compare=False)

    @classmethod
    def from_error(cls, exc: PortalError) -> "PortalFault":
        return cls(kind=exc.kind, message=exc.message, data=dict(exc.data))

    @classmethod
    def of(cls, kind: ErrorKind, message: str | None = None) -> "PortalFault":
        return cls.from_error(PortalError(kind, message))


@dataclass(frozen=True)
class Challenge:
    """A code the server reported as issued, tracked for countdown only."""

    channel: CodeChannel
    issued_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def seconds_remaining(self, now: float) -> int:
        return max(0, int(self.expires_at - now))


@dataclass(frozen=True)
class ControllerState:
    """
    Everything the portal controller knows.

    ``last_issued`` maps (customer id, channel) to the time of the last
    issuance trigger and survives back(), so the suppression window holds
    across steps. ``issuing`` holds the (customer id, channel) pairs with
    an issue request in flight. ``pending`` names the one non-issue
    operation in flight, if any.
    """

    wholesaler_id: str
    step: Step = Step.UNAUTHENTICATED
    opened: bool = False
    profile: WholesalerProfile | None = None
    profile_requested: bool = False
    deep_link: str | None = None
    deep_link_attempted: bool = False
    last_four: str = ""
    customer: CustomerRecord | None = None
    channel_mode: ChannelMode = ChannelMode.SMS
    active_channel: CodeChannel = CodeChannel.SMS
    challenges: tuple[Challenge, ...] = ()
    last_issued: tuple[tuple[tuple[str, CodeChannel], float], ...] = ()
    issuing: frozenset = field(default_factory=frozenset)
    pending: str | None = None
    error: PortalFault | None = None
    blocked_fragments: frozenset = field(default_factory=frozenset)
    registration_message: str = ""

    def update(self, **changes) -> "ControllerState":
        return replace(self, **changes)

    @property
    def challenge(self) -> Challenge | None:
        """Tracked challenge of the active channel."""
        for challenge in self.challenges:
            if challenge.channel == self.active_channel:
                return challenge
        return None

    def last_issued_at(self, customer_id: str, channel: CodeChannel) -> float | None:
        return dict(self.last_issued).get((customer_id, channel))

    @property
    def display_name(self) -> str:
        if self.profile and self.profile.business_name:
            return self.profile.business_name
        return DEFAULT_DISPLAY_NAME

    @property
    def initials(self) -> str:
        words = self.display_name.split()
        return "".join(word[0] for word in words[:2]).upper()


# ======================================================================
# EVENTS
# ======================================================================


@dataclass(frozen=True)
class Open:
    deep_link: str | None = None


@dataclass(frozen=True)
class ProfileResolved:
    profile: WholesalerProfile | None


@dataclass(frozen=True)
class SessionChecked:
    customer: CustomerRecord | None


@dataclass(frozen=True)
class DigitsSubmitted:
    raw: str


@dataclass(frozen=True)
class PhoneMatched:
    customer: CustomerRecord


@dataclass(frozen=True)
class CodeIssued:
    customer_id: str
    channel: CodeChannel
    issue: CodeIssue


@dataclass(frozen=True)
class CodeSubmitted:
    code: str


@dataclass(frozen=True)
class CodeVerified:
    customer: CustomerRecord


@dataclass(frozen=True)
class ResendRequested:
    pass


@dataclass(frozen=True)
class ChannelSwitched:
    channel: CodeChannel


@dataclass(frozen=True)
class BackRequested:
    pass


@dataclass(frozen=True)
class RegistrationEntered:
    form: RegistrationForm


@dataclass(frozen=True)
class RegistrationAccepted:
    message: str


@dataclass(frozen=True)
class Acknowledged:
    pass


@dataclass(frozen=True)
class LogoutRequested:
    pass


@dataclass(frozen=True)
class LoggedOut:
    pass


@dataclass(frozen=True)
class Failed:
    """A command raised PortalError."""

    command: "Command"
    fault: PortalFault


# ======================================================================
# COMMANDS
# ======================================================================


@dataclass(frozen=True)
class ResolveProfile:
    wholesaler_id: str


@dataclass(frozen=True)
class CheckSession:
    wholesaler_id: str


@dataclass(frozen=True)
class MatchPhone:
    wholesaler_id: str
    last_four: str


@dataclass(frozen=True)
class IssueCode:
    channel: CodeChannel
    wholesaler_id: str
    last_four: str
    customer_id: str


@dataclass(frozen=True)
class VerifyCode:
    channel: CodeChannel
    wholesaler_id: str
    last_four: str
    customer_id: str
    code: str


@dataclass(frozen=True)
class SubmitRegistration:
    wholesaler_id: str
    form: RegistrationForm


@dataclass(frozen=True)
class Logout:
    wholesaler_id: str


@dataclass(frozen=True)
class NotifyAuthenticated:
    customer: CustomerRecord


Command = (
    ResolveProfile
    | CheckSession
    | MatchPhone
    | IssueCode
    | VerifyCode
    | SubmitRegistration
    | Logout
    | NotifyAuthenticated
)
