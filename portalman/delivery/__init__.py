"""
Delivery backends for one-time codes.

Backends are selected by dotted path in PORTALMAN["SMS_BACKEND"] and
PORTALMAN["EMAIL_BACKEND"]:

- portalman.delivery.console.LogSmsSender - logs instead of sending (development)
- portalman.delivery.locmem.LocmemSmsSender - keeps messages in memory (tests)
- portalman.delivery.twilio.TwilioSmsSender - Twilio REST API
- portalman.delivery.mail.DjangoMailSender - django.core.mail
"""

from django.utils.module_loading import import_string

from portalman.conf import portalman_settings
from portalman.protocols import EmailSender, SmsSender


def get_sms_sender() -> SmsSender:
    return import_string(portalman_settings.SMS_BACKEND)()


def get_email_sender() -> EmailSender:
    return import_string(portalman_settings.EMAIL_BACKEND)()
