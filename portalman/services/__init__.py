"""Portalman services.

- wholesaler: profile lookup for portal branding
- phone_match: last four digits to a unique customer
- challenge: one-time codes over SMS and email
- session: per-wholesaler portal sessions
- registration: access requests from unregistered customers
"""

from portalman.services import wholesaler
from portalman.services import phone_match
from portalman.services import challenge
from portalman.services import session
from portalman.services import registration

__all__ = ["wholesaler", "phone_match", "challenge", "session", "registration"]
