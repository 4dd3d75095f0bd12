"""Registration request service.

Unregistered customers ask a wholesaler for access; the wholesaler
approves (creating the Customer) or rejects. Writes touching more than
one record use transaction.atomic().
"""

import logging

from django.db import transaction
from django.utils import timezone

from portalman.exceptions import ErrorKind, PortalError
from portalman.gates import Gates
from portalman.models import Customer, RegistrationRequest, RegistrationStatus
from portalman.services.phone_match import get_wholesaler
from portalman.signals import registration_requested, registration_responded
from portalman.utils import digits_only, mask_phone, normalize_phone

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 7


def submit(
    wholesaler_code: str,
    customer_phone: str,
    customer_name: str,
    customer_email: str = "",
    business_name: str = "",
    request_message: str = "",
) -> tuple[RegistrationRequest, bool]:
    """
    Record an access request for a wholesaler.

    A pending request for the same phone is returned instead of creating
    a second one.

    Returns:
        Tuple of (RegistrationRequest, created: bool)

    Raises:
        PortalError: validation, unknown_wholesaler
    """
    customer_name = (customer_name or "").strip()
    if not customer_name:
        raise PortalError(ErrorKind.VALIDATION, "Please enter your name.")
    if len(digits_only(customer_phone)) < MIN_PHONE_DIGITS:
        raise PortalError(ErrorKind.VALIDATION, "Please enter a valid phone number.")

    wholesaler = get_wholesaler(wholesaler_code)
    phone = normalize_phone(customer_phone)

    existing = RegistrationRequest.objects.filter(
        wholesaler=wholesaler,
        customer_phone=phone,
        status=RegistrationStatus.PENDING,
    ).first()
    if existing:
        return existing, False

    request = RegistrationRequest.objects.create(
        wholesaler=wholesaler,
        customer_name=customer_name,
        customer_phone=phone,
        customer_email=(customer_email or "").strip(),
        business_name=(business_name or "").strip(),
        request_message=(request_message or "").strip(),
    )
    logger.info("Registration request from %s for %s", mask_phone(phone), wholesaler.code)
    registration_requested.send(sender=RegistrationRequest, request=request)
    return request, True


def pending(wholesaler_code: str) -> list[RegistrationRequest]:
    """Pending requests of a wholesaler, oldest first."""
    return list(
        RegistrationRequest.objects.filter(
            wholesaler__code=wholesaler_code,
            status=RegistrationStatus.PENDING,
        ).order_by("requested_at", "id")
    )


def respond(
    request_uuid: str,
    action: str,
    response_message: str = "",
    responded_by: str = "",
) -> RegistrationRequest:
    """
    Approve or reject a pending request.

    Approval creates the Customer (or links the existing one with the same
    phone under that wholesaler).

    Raises:
        PortalError: not_found
        GateError: validation (unknown action, request not pending)
    """
    with transaction.atomic():
        try:
            request = (
                RegistrationRequest.objects.select_for_update()
                .select_related("wholesaler")
                .get(uuid=request_uuid)
            )
        except RegistrationRequest.DoesNotExist:
            raise PortalError(ErrorKind.NOT_FOUND, "Registration request not found.")

        Gates.registration_pending(request, action)

        if action == "approve":
            customer, _ = Customer.objects.get_or_create(
                wholesaler=request.wholesaler,
                phone=request.customer_phone,
                defaults={
                    "name": request.customer_name,
                    "email": request.customer_email,
                    "business_name": request.business_name,
                },
            )
            request.customer = customer
            request.status = RegistrationStatus.APPROVED
        else:
            request.status = RegistrationStatus.REJECTED

        request.responded_at = timezone.now()
        request.response_message = response_message
        request.responded_by = responded_by
        request.save()

    registration_responded.send(sender=RegistrationRequest, request=request, action=action)
    return request
