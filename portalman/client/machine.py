"""
Portal state machine.

    transition(state, event, now) -> (state, commands)

Pure: no I/O, no clock reads. Events that do not apply to the current
step (late completions, double clicks, remounts) return the state
unchanged with no commands.

Steps:
    UNAUTHENTICATED -> PHONE_ENTRY -> VERIFYING -> CODE_ENTRY -> AUTHENTICATED
    VERIFYING -> REGISTRATION_OFFERED -> REGISTRATION_SUBMITTED -> PHONE_ENTRY

Transport failures never change the step.
"""

import re

from portalman.client.states import (
    RESEND_AFTER,
    SUPPRESS_WINDOW,
    TTL_BY_CHANNEL,
    Acknowledged,
    BackRequested,
    Challenge,
    ChannelMode,
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
from portalman.exceptions import ErrorKind
from portalman.utils import CODE_LENGTH, LAST_FOUR_LENGTH, digits_only

CODE_PATTERN = re.compile(rf"[0-9]{{{CODE_LENGTH}}}")
MIN_PHONE_DIGITS = 7

UNCHANGED = ()


def transition(state: ControllerState, event, now: float):
    """Apply ``event`` at time ``now``; return (next state, commands)."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown portal event: {event!r}")
    return handler(state, event, now)


# ======================================================================
# QUERIES
# ======================================================================


def sanitize_digits(raw: str | None) -> str:
    """Keep digits only, at most four."""
    return digits_only(raw, LAST_FOUR_LENGTH)


def can_resend(state: ControllerState, now: float) -> bool:
    """
    Whether the resend affordance is enabled.

    Disabled for RESEND_AFTER seconds after an issuance, enabled after
    that and whenever the tracked challenge has expired.
    """
    if state.step != Step.CODE_ENTRY or state.customer is None:
        return False
    if (state.customer.id, state.active_channel) in state.issuing:
        return False
    challenge = state.challenge
    if challenge is None:
        return not _suppressed(state, state.active_channel, now)
    return challenge.is_expired(now) or now - challenge.issued_at >= RESEND_AFTER


def seconds_remaining(state: ControllerState, now: float) -> int:
    """Countdown of the active channel's code, for display only."""
    challenge = state.challenge
    if challenge is None:
        return 0
    return challenge.seconds_remaining(now)


def _tracking(state: ControllerState, customer_id: str) -> bool:
    """Whether code results for ``customer_id`` still belong on screen."""
    return (
        state.step == Step.CODE_ENTRY
        and state.customer is not None
        and state.customer.id == customer_id
    )


def _suppressed(state: ControllerState, channel: CodeChannel, now: float) -> bool:
    last = state.last_issued_at(state.customer.id, channel)
    return last is not None and now - last < SUPPRESS_WINDOW


# ======================================================================
# PORTAL OPEN
# ======================================================================


def _on_open(state, event: Open, now):
    if state.opened:
        return state, UNCHANGED

    commands = []
    changes = {"opened": True, "pending": "check"}
    if event.deep_link and not state.deep_link_attempted:
        changes["deep_link"] = event.deep_link
    if not state.profile_requested:
        changes["profile_requested"] = True
        commands.append(ResolveProfile(state.wholesaler_id))
    commands.append(CheckSession(state.wholesaler_id))
    return state.update(**changes), commands


def _on_profile_resolved(state, event: ProfileResolved, now):
    return state.update(profile=event.profile), UNCHANGED


def _on_session_checked(state, event: SessionChecked, now):
    if state.pending != "check":
        return state, UNCHANGED

    state = state.update(pending=None)
    if event.customer is not None:
        return _authenticated(state, event.customer)
    return _enter_phone_step(state)


def _enter_phone_step(state):
    """After a failed session check: deep link (once) or phone entry."""
    digits = sanitize_digits(state.deep_link)
    if (
        state.deep_link
        and not state.deep_link_attempted
        and len(digits) == LAST_FOUR_LENGTH
        and digits not in state.blocked_fragments
    ):
        state = state.update(deep_link_attempted=True)
        return _start_match(state, digits)

    return state.update(
        step=Step.PHONE_ENTRY,
        deep_link_attempted=state.deep_link_attempted or bool(state.deep_link),
    ), UNCHANGED


# ======================================================================
# PHONE MATCH
# ======================================================================


def _on_digits_submitted(state, event: DigitsSubmitted, now):
    retrying = state.step == Step.VERIFYING and state.pending is None
    if not (state.step == Step.PHONE_ENTRY or retrying) or state.pending:
        return state, UNCHANGED

    digits = sanitize_digits(event.raw)
    if len(digits) != LAST_FOUR_LENGTH:
        fault = PortalFault.of(ErrorKind.VALIDATION, "Please enter exactly 4 digits.")
        return state.update(step=Step.PHONE_ENTRY, error=fault), UNCHANGED
    if digits in state.blocked_fragments:
        fault = PortalFault.of(ErrorKind.AMBIGUOUS)
        return state.update(step=Step.PHONE_ENTRY, error=fault), UNCHANGED

    return _start_match(state, digits)


def _start_match(state, digits):
    state = state.update(
        step=Step.VERIFYING,
        last_four=digits,
        customer=None,
        challenges=(),
        error=None,
        pending="match",
    )
    return state, [MatchPhone(state.wholesaler_id, digits)]


def _on_phone_matched(state, event: PhoneMatched, now):
    if state.step != Step.VERIFYING or state.pending != "match":
        return state, UNCHANGED

    customer = event.customer
    state = state.update(
        step=Step.CODE_ENTRY,
        pending=None,
        customer=customer,
        channel_mode=ChannelMode.BOTH if customer.has_email else ChannelMode.SMS,
        active_channel=CodeChannel.SMS,
        challenges=(),
        error=None,
    )
    # Proactive SMS, sequenced after the match result
    return _issue(state, CodeChannel.SMS, now)


def _failed_match(state, command: MatchPhone, fault: PortalFault):
    state = state.update(pending=None, error=fault)
    if fault.kind is ErrorKind.TRANSPORT:
        return state, UNCHANGED
    if fault.kind is ErrorKind.NOT_FOUND:
        return state.update(step=Step.REGISTRATION_OFFERED), UNCHANGED
    if fault.kind is ErrorKind.AMBIGUOUS:
        blocked = state.blocked_fragments | {command.last_four}
        return state.update(step=Step.PHONE_ENTRY, blocked_fragments=blocked), UNCHANGED
    return state.update(step=Step.PHONE_ENTRY), UNCHANGED


# ======================================================================
# CODES
# ======================================================================


def _issue(state, channel: CodeChannel, now):
    """Emit IssueCode unless one is in flight or inside SUPPRESS_WINDOW."""
    state = state.update(active_channel=channel)
    key = (state.customer.id, channel)
    if key in state.issuing or _suppressed(state, channel, now):
        return state, UNCHANGED

    last_issued = dict(state.last_issued)
    last_issued[key] = now
    state = state.update(
        issuing=state.issuing | {key},
        last_issued=tuple(last_issued.items()),
    )
    return state, [
        IssueCode(
            channel=channel,
            wholesaler_id=state.wholesaler_id,
            last_four=state.last_four,
            customer_id=state.customer.id,
        )
    ]


def _on_code_issued(state, event: CodeIssued, now):
    state = state.update(issuing=state.issuing - {(event.customer_id, event.channel)})
    if not _tracking(state, event.customer_id):
        return state, UNCHANGED

    ttl = event.issue.expires_in
    if ttl is None:
        ttl = TTL_BY_CHANNEL[event.channel]
    challenge = Challenge(channel=event.channel, issued_at=now, expires_at=now + ttl)
    others = tuple(c for c in state.challenges if c.channel != event.channel)
    return state.update(challenges=others + (challenge,), error=None), UNCHANGED


def _failed_issue(state, command: IssueCode, fault: PortalFault, now):
    key = (command.customer_id, command.channel)
    state = state.update(issuing=state.issuing - {key})
    if fault.kind is ErrorKind.DELIVERY_FAILED:
        # Nothing was sent; do not hold the suppression window
        state = state.update(last_issued=tuple(i for i in state.last_issued if i[0] != key))
    if not _tracking(state, command.customer_id):
        return state, UNCHANGED
    if fault.kind is ErrorKind.RATE_LIMITED:
        state = _resume_challenge(state, command.channel, fault.data, now)
    return state.update(error=fault), UNCHANGED


def _resume_challenge(state, channel: CodeChannel, details: dict, now):
    """Track the code the server still holds after refusing a reissue."""
    try:
        expires_in = int(details["expiresIn"])
        retry_after = int(details.get("retryAfter", RESEND_AFTER))
    except (KeyError, TypeError, ValueError):
        return state
    if any(c.channel == channel and not c.is_expired(now) for c in state.challenges):
        return state

    # Resend opens when the server cooldown ends
    issued_at = now + min(retry_after, RESEND_AFTER) - RESEND_AFTER
    challenge = Challenge(channel=channel, issued_at=issued_at, expires_at=now + expires_in)
    others = tuple(c for c in state.challenges if c.channel != channel)
    return state.update(challenges=others + (challenge,))


def _on_resend(state, event: ResendRequested, now):
    if not can_resend(state, now):
        return state, UNCHANGED
    return _issue(state, state.active_channel, now)


def _on_channel_switched(state, event: ChannelSwitched, now):
    if state.step != Step.CODE_ENTRY or state.customer is None:
        return state, UNCHANGED
    if event.channel == CodeChannel.EMAIL and state.channel_mode != ChannelMode.BOTH:
        return state, UNCHANGED

    state = state.update(active_channel=event.channel, error=None)
    if state.challenge is not None and not state.challenge.is_expired(now):
        return state, UNCHANGED
    return _issue(state, event.channel, now)


def _on_code_submitted(state, event: CodeSubmitted, now):
    if state.step != Step.CODE_ENTRY or state.pending:
        return state, UNCHANGED

    code = (event.code or "").strip()
    if not CODE_PATTERN.fullmatch(code):
        fault = PortalFault.of(ErrorKind.VALIDATION, "Please enter the 6-digit code.")
        return state.update(error=fault), UNCHANGED

    state = state.update(pending="verify", error=None)
    return state, [
        VerifyCode(
            channel=state.active_channel,
            wholesaler_id=state.wholesaler_id,
            last_four=state.last_four,
            customer_id=state.customer.id,
            code=code,
        )
    ]


def _on_code_verified(state, event: CodeVerified, now):
    if state.step != Step.CODE_ENTRY or state.pending != "verify":
        return state, UNCHANGED
    return _authenticated(state.update(pending=None), event.customer)


def _failed_verify(state, command: VerifyCode, fault: PortalFault, now):
    if state.pending != "verify":
        return state, UNCHANGED
    state = state.update(pending=None, error=fault)
    if fault.kind is ErrorKind.EXPIRED_CODE:
        # Server says the code is gone: end the countdown so resend opens
        challenges = tuple(
            Challenge(c.channel, c.issued_at, min(c.expires_at, now))
            if c.channel == command.channel
            else c
            for c in state.challenges
        )
        state = state.update(challenges=challenges)
    return state, UNCHANGED


def _authenticated(state, customer):
    state = state.update(
        step=Step.AUTHENTICATED,
        customer=customer,
        challenges=(),
        error=None,
    )
    return state, [NotifyAuthenticated(customer)]


# ======================================================================
# NAVIGATION
# ======================================================================


def _on_back(state, event: BackRequested, now):
    leaving = (Step.CODE_ENTRY, Step.REGISTRATION_OFFERED, Step.VERIFYING)
    if state.step not in leaving or state.pending:
        return state, UNCHANGED
    return _reset_to_phone_entry(state), UNCHANGED


def _reset_to_phone_entry(state):
    # last_issued and issuing are kept: the suppression window survives
    return state.update(
        step=Step.PHONE_ENTRY,
        last_four="",
        customer=None,
        channel_mode=ChannelMode.SMS,
        active_channel=CodeChannel.SMS,
        challenges=(),
        error=None,
        registration_message="",
    )


# ======================================================================
# REGISTRATION
# ======================================================================


def _on_registration_entered(state, event: RegistrationEntered, now):
    if state.step != Step.REGISTRATION_OFFERED or state.pending:
        return state, UNCHANGED

    form = event.form
    if not form.customer_name.strip():
        fault = PortalFault.of(ErrorKind.VALIDATION, "Please enter your name.")
        return state.update(error=fault), UNCHANGED
    if len(digits_only(form.customer_phone)) < MIN_PHONE_DIGITS:
        fault = PortalFault.of(ErrorKind.VALIDATION, "Please enter a valid phone number.")
        return state.update(error=fault), UNCHANGED

    state = state.update(pending="register", error=None)
    return state, [SubmitRegistration(state.wholesaler_id, form)]


def _on_registration_accepted(state, event: RegistrationAccepted, now):
    if state.pending != "register":
        return state, UNCHANGED
    return state.update(
        step=Step.REGISTRATION_SUBMITTED,
        pending=None,
        error=None,
        registration_message=event.message,
    ), UNCHANGED


def _on_acknowledged(state, event: Acknowledged, now):
    if state.step != Step.REGISTRATION_SUBMITTED:
        return state, UNCHANGED
    return _reset_to_phone_entry(state), UNCHANGED


# ======================================================================
# LOGOUT
# ======================================================================


def _on_logout_requested(state, event: LogoutRequested, now):
    if state.step != Step.AUTHENTICATED or state.pending:
        return state, UNCHANGED
    return state.update(pending="logout"), [Logout(state.wholesaler_id)]


def _on_logged_out(state, event: LoggedOut, now):
    if state.pending != "logout":
        return state, UNCHANGED
    return _reset_to_phone_entry(state.update(pending=None)), UNCHANGED


# ======================================================================
# FAILURES
# ======================================================================


def _on_failed(state, event: Failed, now):
    command, fault = event.command, event.fault

    if isinstance(command, ResolveProfile):
        # Unbranded portal; never blocks the flow
        return state.update(profile=None), UNCHANGED
    if isinstance(command, CheckSession):
        # No verdict counts as no session
        return _on_session_checked(state, SessionChecked(None), now)
    if isinstance(command, MatchPhone):
        if state.pending != "match":
            return state, UNCHANGED
        return _failed_match(state, command, fault)
    if isinstance(command, IssueCode):
        return _failed_issue(state, command, fault, now)
    if isinstance(command, VerifyCode):
        return _failed_verify(state, command, fault, now)
    if isinstance(command, (SubmitRegistration, Logout)):
        return state.update(pending=None, error=fault), UNCHANGED
    return state.update(error=fault), UNCHANGED


_HANDLERS = {
    Open: _on_open,
    ProfileResolved: _on_profile_resolved,
    SessionChecked: _on_session_checked,
    DigitsSubmitted: _on_digits_submitted,
    PhoneMatched: _on_phone_matched,
    CodeIssued: _on_code_issued,
    CodeSubmitted: _on_code_submitted,
    CodeVerified: _on_code_verified,
    ResendRequested: _on_resend,
    ChannelSwitched: _on_channel_switched,
    BackRequested: _on_back,
    RegistrationEntered: _on_registration_entered,
    RegistrationAccepted: _on_registration_accepted,
    Acknowledged: _on_acknowledged,
    LogoutRequested: _on_logout_requested,
    LoggedOut: _on_logged_out,
    Failed: _on_failed,
}
