"""One-time code service - issue and verify codes over SMS and email.

Codes are 6 digits, stored as HMAC only. SMS codes live SMS_CODE_TTL
seconds, email codes EMAIL_CODE_TTL seconds. A new code for the same
(customer, channel) supersedes the previous one and is refused inside
ISSUE_COOLDOWN (Gate G3). Wrong codes leave the challenge active with
its original expiry until MAX_CODE_ATTEMPTS is reached.
"""

import logging
import secrets
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.html import format_html

from portalman.conf import portalman_settings
from portalman.delivery import get_email_sender, get_sms_sender
from portalman.exceptions import ErrorKind, PortalError
from portalman.gates import Gates
from portalman.models import Channel, Customer, VerificationChallenge
from portalman.protocols import DeliveryResult
from portalman.services import phone_match
from portalman.signals import customer_verified
from portalman.utils import mask_email, mask_phone

logger = logging.getLogger(__name__)


def generate_code() -> str:
    """Random 6-digit code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


# ======================================================================
# ISSUE
# ======================================================================


def issue_sms(wholesaler_code: str, last_four: str) -> VerificationChallenge:
    """
    Re-run the phone match and send an SMS code to the customer.

    Raises:
        GateError: validation, not_found, ambiguous, rate_limited
        PortalError: unknown_wholesaler, delivery_failed
    """
    customer = phone_match.match(wholesaler_code, last_four)

    def deliver(code: str):
        return get_sms_sender().send_sms(customer.phone, sms_body(customer, code))

    challenge = _issue(
        customer,
        Channel.SMS,
        destination=customer.phone,
        ttl=portalman_settings.SMS_CODE_TTL,
        deliver=deliver,
    )
    logger.info("SMS code issued to %s", mask_phone(customer.phone))
    return challenge


def issue_email(customer_uuid: str, email: str | None = None) -> VerificationChallenge:
    """
    Send an email code to the customer's email on file.

    Args:
        customer_uuid: Customer public id
        email: Optional; when given it must match the email on file

    Raises:
        PortalError: not_found, validation, rate_limited, delivery_failed
    """
    customer = get_customer(customer_uuid)
    _check_email(customer, email)

    def deliver(code: str):
        subject, text, html = email_content(customer, code)
        return get_email_sender().send_email(customer.email, subject, text, html)

    challenge = _issue(
        customer,
        Channel.EMAIL,
        destination=customer.email,
        ttl=portalman_settings.EMAIL_CODE_TTL,
        deliver=deliver,
    )
    logger.info("Email code issued to %s", mask_email(customer.email))
    return challenge


def _issue(customer: Customer, channel: str, destination: str, ttl: int, deliver):
    now = timezone.now()
    code = generate_code()

    with transaction.atomic():
        # Serialize concurrent issues for the same customer
        Customer.objects.select_for_update().filter(pk=customer.pk).first()
        Gates.issue_cooldown(customer, channel, now=now)

        VerificationChallenge.objects.filter(
            customer=customer,
            channel=channel,
            consumed_at__isnull=True,
            superseded_at__isnull=True,
        ).update(superseded_at=now)

        challenge = VerificationChallenge.objects.create(
            customer=customer,
            channel=channel,
            destination=destination,
            code_hash=VerificationChallenge.hash_code(code),
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )

    try:
        result = deliver(code)
    except Exception:
        logger.exception("%s sender raised for customer %s", channel, customer.uuid)
        result = DeliveryResult(False, error="Sender error")

    if not result.success:
        # An unsent code must not hold the cooldown
        challenge.delete()
        logger.warning("%s delivery failed for customer %s: %s", channel, customer.uuid, result.error)
        raise PortalError(ErrorKind.DELIVERY_FAILED, channel=channel)

    return challenge


# ======================================================================
# VERIFY
# ======================================================================


def verify_sms(wholesaler_code: str, last_four: str, code: str) -> Customer:
    """
    Verify an SMS code for the customer behind ``last_four``.

    Raises:
        GateError: validation, not_found, ambiguous
        PortalError: invalid_code, expired_code
    """
    Gates.code_format(code)
    customer = phone_match.match(wholesaler_code, last_four)
    return _verify(customer, Channel.SMS, code)


def verify_email(customer_uuid: str, code: str, email: str | None = None) -> Customer:
    """Verify an email code. Same errors as verify_sms()."""
    Gates.code_format(code)
    customer = get_customer(customer_uuid)
    _check_email(customer, email)
    return _verify(customer, Channel.EMAIL, code)


def _verify(customer: Customer, channel: str, code: str) -> Customer:
    now = timezone.now()
    failure = None

    with transaction.atomic():
        challenge = (
            VerificationChallenge.objects.select_for_update()
            .filter(
                customer=customer,
                channel=channel,
                consumed_at__isnull=True,
                superseded_at__isnull=True,
            )
            .order_by("-created_at")
            .first()
        )

        if (
            challenge is None
            or challenge.is_expired(now)
            or challenge.attempts >= portalman_settings.MAX_CODE_ATTEMPTS
        ):
            failure = PortalError(ErrorKind.EXPIRED_CODE)
        elif not challenge.matches(code):
            challenge.attempts += 1
            challenge.save(update_fields=["attempts"])
            failure = PortalError(
                ErrorKind.INVALID_CODE,
                attemptsLeft=max(0, portalman_settings.MAX_CODE_ATTEMPTS - challenge.attempts),
            )
        else:
            challenge.consumed_at = now
            challenge.save(update_fields=["consumed_at"])

    # Raised outside the atomic block so the attempt counter is kept
    if failure:
        logger.info("%s code rejected for customer %s: %s", channel, customer.uuid, failure.code)
        raise failure

    customer.mark_verified(channel)
    customer_verified.send(sender=Customer, customer=customer, channel=channel)
    return customer


# ======================================================================
# HELPERS
# ======================================================================


def get_customer(customer_uuid: str) -> Customer:
    """Active customer by public id or PortalError(not_found)."""
    try:
        return Customer.objects.select_related("wholesaler").get(
            uuid=customer_uuid, is_active=True
        )
    except (Customer.DoesNotExist, ValidationError):
        raise PortalError(ErrorKind.NOT_FOUND)


def _check_email(customer: Customer, email: str | None) -> None:
    if not customer.email:
        raise PortalError(ErrorKind.VALIDATION, "No email address on file.")
    if email and email.strip().lower() != customer.email:
        raise PortalError(ErrorKind.VALIDATION, "Email does not match our records.")


def sms_body(customer: Customer, code: str) -> str:
    body = f"Your {customer.wholesaler.business_name} verification code: {code}"
    base_url = portalman_settings.STORE_BASE_URL
    if base_url:
        body += f"\n\n{base_url.rstrip('/')}/store/{customer.wholesaler.code}"
    return body


def email_content(customer: Customer, code: str) -> tuple[str, str, str]:
    """Subject, plain text and HTML for an email code."""
    business = customer.wholesaler.business_name
    minutes = portalman_settings.EMAIL_CODE_TTL // 60
    subject = f"Verify your email - {business} Customer Portal"
    text = (
        f"{business} - Email Verification Required\n\n"
        f"Your verification code: {code}\n\n"
        f"This code will expire in {minutes} minutes.\n"
        "For security, never share this code with anyone.\n\n"
        "If you didn't request this verification, you can safely ignore this email."
    )
    html = format_html(
        "<h2>Email Verification Required</h2>"
        "<p>Your {} verification code:</p>"
        '<h1 style="letter-spacing: 4px">{}</h1>'
        "<p>This code will expire in {} minutes. "
        "For security, never share this code with anyone.</p>",
        business,
        code,
        minutes,
    )
    return subject, text, html
