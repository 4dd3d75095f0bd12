"""Phone match verifier - last four digits to a unique customer.

Read-only: a match never issues a code by itself.
"""

import logging

from portalman.exceptions import ErrorKind, PortalError
from portalman.gates import Gates
from portalman.models import Customer, Wholesaler
from portalman.services import wholesaler as wholesaler_service

logger = logging.getLogger(__name__)


def get_wholesaler(code: str) -> Wholesaler:
    """Active wholesaler or PortalError(unknown_wholesaler)."""
    wholesaler = wholesaler_service.get(code)
    if not wholesaler:
        raise PortalError(ErrorKind.UNKNOWN_WHOLESALER, wholesaler_id=code)
    return wholesaler


def match(wholesaler_code: str, last_four: str) -> Customer:
    """
    Find the single active customer of a wholesaler whose phone ends in
    ``last_four``.

    Args:
        wholesaler_code: Wholesaler public code
        last_four: Exactly 4 digits (re-validated here)

    Returns:
        The matching Customer

    Raises:
        GateError: validation (malformed digits), not_found, ambiguous
        PortalError: unknown_wholesaler
    """
    Gates.last_four_format(last_four)
    wholesaler = get_wholesaler(wholesaler_code)

    # Two rows are enough to tell unique from ambiguous
    matches = list(
        Customer.objects.select_related("wholesaler").filter(
            wholesaler=wholesaler,
            phone_last_four=last_four,
            is_active=True,
        )[:2]
    )
    Gates.unique_match(matches, wholesaler_code=wholesaler.code)

    customer = matches[0]
    logger.debug("Phone match for %s: customer %s", wholesaler.code, customer.uuid)
    return customer
