"""Development SMS sender: logs the message instead of sending it."""

import logging
import uuid

from portalman.protocols import DeliveryResult
from portalman.utils import mask_phone

logger = logging.getLogger(__name__)


class LogSmsSender:
    """Writes outgoing SMS to the log. Never use in production."""

    def send_sms(self, to: str, body: str) -> DeliveryResult:
        logger.info("SMS to %s: %s", mask_phone(to), body)
        return DeliveryResult(True, message_id=f"log-{uuid.uuid4().hex[:12]}")
