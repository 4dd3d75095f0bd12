"""Email sender backed by django.core.mail."""

import logging
import smtplib

from django.core.mail import EmailMultiAlternatives

from portalman.conf import portalman_settings
from portalman.protocols import DeliveryResult
from portalman.utils import mask_email

logger = logging.getLogger(__name__)


class DjangoMailSender:
    """EmailSender using the project's configured EMAIL_BACKEND."""

    def send_email(
        self,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
    ) -> DeliveryResult:
        message = EmailMultiAlternatives(
            subject=subject,
            body=text,
            from_email=portalman_settings.FROM_EMAIL or None,
            to=[to],
        )
        if html:
            message.attach_alternative(html, "text/html")

        try:
            sent = message.send()
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email to %s failed: %s", mask_email(to), exc)
            return DeliveryResult(False, error=str(exc))

        return DeliveryResult(bool(sent), error=None if sent else "Email not sent")
