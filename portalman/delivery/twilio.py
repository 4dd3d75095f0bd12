"""
Twilio SMS sender.

Calls the Messages REST endpoint directly over httpx; credentials come from
PORTALMAN["TWILIO_ACCOUNT_SID"], ["TWILIO_AUTH_TOKEN"] and
["TWILIO_FROM_NUMBER"].
"""

import logging

import httpx

from portalman.conf import portalman_settings
from portalman.protocols import DeliveryResult
from portalman.utils import mask_phone

logger = logging.getLogger(__name__)

TWILIO_API = "https://api.twilio.com/2010-04-01"

# Twilio error codes worth spelling out in logs
ERROR_HINTS = {
    21211: "Invalid phone number format",
    21408: "Permission denied - check account status",
    21610: "Message blocked by carrier",
    21659: "Phone number not verified in Twilio Console",
    30007: "Message delivery failed",
}


class TwilioSmsSender:
    """
    SmsSender backed by Twilio's REST API.

    An injected client is reused and left open; otherwise each send opens
    and closes its own.
    """

    def __init__(self, client: httpx.Client | None = None, timeout: float = 10.0):
        self.account_sid = portalman_settings.TWILIO_ACCOUNT_SID
        self.auth_token = portalman_settings.TWILIO_AUTH_TOKEN
        self.from_number = portalman_settings.TWILIO_FROM_NUMBER
        self.timeout = timeout
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send_sms(self, to: str, body: str) -> DeliveryResult:
        if not self.is_configured:
            return DeliveryResult(False, error="SMS service not configured")

        if self._client is not None:
            return self._send(self._client, to, body)
        with httpx.Client(timeout=self.timeout) as client:
            return self._send(client, to, body)

    def _send(self, client: httpx.Client, to: str, body: str) -> DeliveryResult:
        url = f"{TWILIO_API}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = client.post(
                url,
                data={"To": to, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.HTTPError as exc:
            logger.error("Twilio request to %s failed: %s", mask_phone(to), exc)
            return DeliveryResult(False, error=str(exc))

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.status_code >= 400:
            code = payload.get("code")
            logger.error(
                "Twilio rejected SMS to %s: %s (%s)",
                mask_phone(to),
                payload.get("message", response.text),
                ERROR_HINTS.get(code, code),
            )
            error = ERROR_HINTS.get(code) or payload.get("message") or "SMS sending failed"
            return DeliveryResult(False, error=error)

        # Accepted by Twilio even when the body is unreadable
        sid = payload.get("sid")
        logger.info("SMS sent to %s: %s", mask_phone(to), sid)
        return DeliveryResult(True, message_id=sid)
