"""
Portalman client - the portal's authentication flow, Django-free.

- states: immutable state, events, commands and timing constants
- machine: pure transition function
- controller: PortalController, runs commands against a PortalBackend
- http: HttpPortalBackend over httpx
"""

from portalman.client.controller import PortalController
from portalman.client.http import HttpPortalBackend
from portalman.client.machine import can_resend, sanitize_digits, seconds_remaining, transition
from portalman.client.states import (
    RESEND_AFTER,
    SUPPRESS_WINDOW,
    ChannelMode,
    CodeChannel,
    ControllerState,
    PortalFault,
    Step,
)

__all__ = [
    "PortalController",
    "HttpPortalBackend",
    "transition",
    "can_resend",
    "sanitize_digits",
    "seconds_remaining",
    "ControllerState",
    "PortalFault",
    "Step",
    "ChannelMode",
    "CodeChannel",
    "RESEND_AFTER",
    "SUPPRESS_WINDOW",
]
