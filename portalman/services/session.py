"""Portal session service.

A verified customer's access is kept in the Django session under
SESSION_KEY as {wholesaler code: {"customer": uuid, "verified_at": iso}},
one entry per wholesaler, each valid for SESSION_TTL seconds.
"""

import logging
from datetime import datetime, timedelta

from django.utils import timezone

from portalman.conf import portalman_settings
from portalman.models import Customer

logger = logging.getLogger(__name__)

SESSION_KEY = "portalman.auth"


def login(request, customer: Customer) -> None:
    """Record ``customer`` as verified for its wholesaler."""
    entries = dict(request.session.get(SESSION_KEY, {}))
    entries[customer.wholesaler.code] = {
        "customer": str(customer.uuid),
        "verified_at": timezone.now().isoformat(),
    }
    request.session[SESSION_KEY] = entries
    # New privilege level: rotate the session key
    request.session.cycle_key()


def current_customer(request, wholesaler_code: str) -> Customer | None:
    """
    Customer holding a live session for this wholesaler, or None.

    Read-only apart from dropping an expired or dangling entry, so two
    consecutive checks give the same verdict.
    """
    entries = request.session.get(SESSION_KEY, {})
    entry = entries.get(wholesaler_code)
    if not entry:
        return None

    if _is_expired(entry):
        logout(request, wholesaler_code)
        return None

    try:
        customer = Customer.objects.select_related("wholesaler").get(
            uuid=entry["customer"],
            wholesaler__code=wholesaler_code,
            wholesaler__is_active=True,
            is_active=True,
        )
    except Customer.DoesNotExist:
        logout(request, wholesaler_code)
        return None

    return customer


def logout(request, wholesaler_code: str | None = None) -> None:
    """Drop one wholesaler's entry, or every entry when no code is given."""
    if wholesaler_code is None:
        request.session.pop(SESSION_KEY, None)
        return

    entries = dict(request.session.get(SESSION_KEY, {}))
    if entries.pop(wholesaler_code, None) is not None:
        request.session[SESSION_KEY] = entries


def _is_expired(entry: dict) -> bool:
    try:
        verified_at = datetime.fromisoformat(entry["verified_at"])
    except (KeyError, TypeError, ValueError):
        return True
    ttl = timedelta(seconds=portalman_settings.SESSION_TTL)
    return timezone.now() - verified_at >= ttl
