"""
PortalController - runs the portal state machine against a backend.

Single-threaded and queue driven: every public method enqueues an event,
then events are drained one at a time through machine.transition and
the resulting commands are executed, their results enqueued in turn.
Calls made while the queue drains (e.g. from on_authenticated) are
queued, never run re-entrantly.

Usage:
    backend = HttpPortalBackend("https://shop.example.com")
    portal = PortalController(backend, "W1", on_authenticated=start_shopping)
    portal.open()
    portal.submit_digits("4321")
    portal.submit_code("123456")
"""

import logging
import time
from collections import deque
from typing import Callable

from portalman.client import machine
from portalman.client.states import (
    Acknowledged,
    BackRequested,
    ChannelSwitched,
    CheckSession,
    CodeChannel,
    CodeIssued,
    CodeSubmitted,
    CodeVerified,
    ControllerState,
    DigitsSubmitted,
    Failed,
    IssueCode,
    LoggedOut,
    Logout,
    LogoutRequested,
    MatchPhone,
    NotifyAuthenticated,
    Open,
    PhoneMatched,
    PortalFault,
    ProfileResolved,
    RegistrationAccepted,
    RegistrationEntered,
    ResendRequested,
    ResolveProfile,
    SessionChecked,
    Step,
    SubmitRegistration,
    VerifyCode,
)
from portalman.exceptions import PortalError
from portalman.protocols.portal import CustomerRecord, PortalBackend, RegistrationForm

logger = logging.getLogger(__name__)


class PortalController:
    """Owns the portal state; the only writer is machine.transition."""

    def __init__(
        self,
        backend: PortalBackend,
        wholesaler_id: str,
        on_authenticated: Callable[[CustomerRecord], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.on_authenticated = on_authenticated
        self._clock = clock
        self._state = ControllerState(wholesaler_id=wholesaler_id)
        self._queue: deque = deque()
        self._draining = False

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def open(self, deep_link: str | None = None) -> None:
        """Portal load. Safe to call again on remount."""
        self.dispatch(Open(deep_link))

    def submit_digits(self, raw: str) -> None:
        self.dispatch(DigitsSubmitted(raw))

    def submit_code(self, code: str) -> None:
        self.dispatch(CodeSubmitted(code))

    def resend(self) -> None:
        self.dispatch(ResendRequested())

    def switch_channel(self, channel: CodeChannel | str) -> None:
        self.dispatch(ChannelSwitched(CodeChannel(channel)))

    def switch_to_email(self) -> None:
        self.switch_channel(CodeChannel.EMAIL)

    def back(self) -> None:
        self.dispatch(BackRequested())

    def submit_registration(self, form: RegistrationForm | None = None, **fields) -> None:
        self.dispatch(RegistrationEntered(form or RegistrationForm(**fields)))

    def acknowledge(self) -> None:
        self.dispatch(Acknowledged())

    def logout(self) -> None:
        self.dispatch(LogoutRequested())

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def step(self) -> Step:
        return self._state.step

    @property
    def error(self) -> PortalFault | None:
        return self._state.error

    @property
    def customer(self) -> CustomerRecord | None:
        return self._state.customer

    @property
    def display_name(self) -> str:
        return self._state.display_name

    @property
    def initials(self) -> str:
        return self._state.initials

    @property
    def channel_mode(self):
        return self._state.channel_mode

    @property
    def active_channel(self) -> CodeChannel:
        return self._state.active_channel

    @property
    def registration_message(self) -> str:
        return self._state.registration_message

    @property
    def can_resend(self) -> bool:
        return machine.can_resend(self._state, self._clock())

    @property
    def seconds_remaining(self) -> int:
        return machine.seconds_remaining(self._state, self._clock())

    @property
    def busy(self) -> bool:
        """True while a request is in flight (UI disables its controls)."""
        return self._state.pending is not None or bool(self._state.issuing)

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def dispatch(self, event) -> None:
        self._queue.append(event)
        if self._draining:
            return

        self._draining = True
        try:
            while self._queue:
                current = self._queue.popleft()
                previous = self._state.step
                self._state, commands = machine.transition(
                    self._state, current, self._clock()
                )
                if self._state.step != previous:
                    logger.debug(
                        "Portal %s: %s -> %s",
                        self._state.wholesaler_id,
                        previous.value,
                        self._state.step.value,
                    )
                for command in commands:
                    result = self._execute(command)
                    if result is not None:
                        self._queue.append(result)
        finally:
            self._draining = False

    def _execute(self, command):
        """Run one command; return the resulting event, if any."""
        if isinstance(command, NotifyAuthenticated):
            logger.info("Portal %s: customer authenticated", self._state.wholesaler_id)
            if self.on_authenticated:
                self.on_authenticated(command.customer)
            return None

        try:
            return self._call_backend(command)
        except PortalError as exc:
            logger.info(
                "Portal %s: %s failed (%s)",
                self._state.wholesaler_id,
                type(command).__name__,
                exc.code,
            )
            return Failed(command, PortalFault.from_error(exc))

    def _call_backend(self, command):
        backend = self.backend

        if isinstance(command, ResolveProfile):
            return ProfileResolved(backend.resolve_wholesaler(command.wholesaler_id))

        if isinstance(command, CheckSession):
            return SessionChecked(backend.check_session(command.wholesaler_id))

        if isinstance(command, MatchPhone):
            return PhoneMatched(backend.match_phone(command.wholesaler_id, command.last_four))

        if isinstance(command, IssueCode):
            if command.channel == CodeChannel.EMAIL:
                issue = backend.send_email_code(command.customer_id)
            else:
                issue = backend.request_sms(command.wholesaler_id, command.last_four)
            return CodeIssued(command.customer_id, command.channel, issue)

        if isinstance(command, VerifyCode):
            if command.channel == CodeChannel.EMAIL:
                customer = backend.verify_email_code(command.customer_id, command.code)
            else:
                customer = backend.verify_sms(
                    command.wholesaler_id, command.last_four, command.code
                )
            return CodeVerified(customer)

        if isinstance(command, SubmitRegistration):
            return RegistrationAccepted(backend.request_access(command.wholesaler_id, command.form))

        if isinstance(command, Logout):
            backend.logout(command.wholesaler_id)
            return LoggedOut()

        raise TypeError(f"Unknown portal command: {command!r}")
