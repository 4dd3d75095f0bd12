"""VerificationChallenge model - one outstanding one-time code."""

import hashlib
import hmac
import uuid as uuid_lib
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Channel(models.TextChoices):
    SMS = "sms", _("SMS")
    EMAIL = "email", _("Email")


class VerificationChallenge(models.Model):
    """
    One-time code sent to a customer over SMS or email.

    The code itself is never stored, only its HMAC. A challenge is active
    while it is neither consumed, superseded, nor past ``expires_at``.
    Issuing a new challenge for the same (customer, channel) supersedes
    the previous one. Wrong submissions leave the challenge active with
    its original expiry.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    customer = models.ForeignKey(
        "portalman.Customer",
        on_delete=models.CASCADE,
        related_name="challenges",
        verbose_name=_("customer"),
    )
    channel = models.CharField(_("channel"), max_length=10, choices=Channel.choices)
    destination = models.CharField(
        _("destination"),
        max_length=255,
        help_text=_("Phone (E.164) or email the code was sent to."),
    )
    code_hash = models.CharField(_("code hash"), max_length=64)

    created_at = models.DateTimeField(_("created at"), db_index=True)
    expires_at = models.DateTimeField(_("expires at"), db_index=True)
    consumed_at = models.DateTimeField(_("consumed at"), null=True, blank=True)
    superseded_at = models.DateTimeField(_("superseded at"), null=True, blank=True)
    attempts = models.PositiveIntegerField(_("failed attempts"), default=0)

    class Meta:
        db_table = "portalman_verification_challenge"
        verbose_name = _("verification challenge")
        verbose_name_plural = _("verification challenges")
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["customer", "channel", "-created_at"],
                name="portalman_v_custome_8c2b41_idx",
            ),
        ]

    def __str__(self):
        return f"{self.channel} challenge for {self.customer_id} ({self.status})"

    @staticmethod
    def hash_code(code: str) -> str:
        key = settings.SECRET_KEY.encode()
        return hmac.new(key, code.encode(), hashlib.sha256).hexdigest()

    def matches(self, code: str) -> bool:
        return hmac.compare_digest(self.code_hash, self.hash_code(code))

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) >= self.expires_at

    def is_active(self, now=None) -> bool:
        return (
            self.consumed_at is None
            and self.superseded_at is None
            and not self.is_expired(now)
        )

    @property
    def status(self) -> str:
        if self.consumed_at:
            return "consumed"
        if self.superseded_at:
            return "superseded"
        if self.is_expired():
            return "expired"
        return "active"

    def seconds_remaining(self, now=None) -> int:
        delta = self.expires_at - (now or timezone.now())
        return max(0, int(delta.total_seconds()))

    @classmethod
    def cleanup_old_challenges(cls, days: int | None = None):
        """Remove challenges that expired more than N days ago."""
        if days is None:
            from portalman.conf import portalman_settings
            days = portalman_settings.CHALLENGE_CLEANUP_DAYS
        cutoff = timezone.now() - timedelta(days=days)
        return cls.objects.filter(expires_at__lt=cutoff).delete()
