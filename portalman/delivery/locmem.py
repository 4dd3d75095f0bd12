"""
In-memory SMS sender for tests.

Mirrors django.core.mail's locmem backend: every message is appended to
the module-level ``outbox``. Set ``fail_next`` to simulate one failed send.
"""

from dataclasses import dataclass

from portalman.protocols import DeliveryResult


@dataclass(frozen=True)
class SentSms:
    to: str
    body: str


outbox: list[SentSms] = []
fail_next: list[str] = []


class LocmemSmsSender:
    def send_sms(self, to: str, body: str) -> DeliveryResult:
        if fail_next:
            return DeliveryResult(False, error=fail_next.pop(0))
        outbox.append(SentSms(to=to, body=body))
        return DeliveryResult(True, message_id=f"locmem-{len(outbox)}")
