"""Customer model.

A customer belongs to exactly one wholesaler. The portal identifies it
by the last four digits of its phone, scoped to that wholesaler, so
``phone_last_four`` is kept in sync on save() and indexed with the
wholesaler. Several customers may share a suffix; the verifier reports
that as ambiguous instead of picking one.
"""

import uuid as uuid_lib

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Customer(models.Model):
    """Registered customer of one wholesaler."""

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    wholesaler = models.ForeignKey(
        "portalman.Wholesaler",
        on_delete=models.CASCADE,
        related_name="customers",
        verbose_name=_("wholesaler"),
    )

    name = models.CharField(_("name"), max_length=200)
    business_name = models.CharField(_("business name"), max_length=200, blank=True)

    # Contact
    phone = models.CharField(_("phone"), max_length=20, help_text=_("E.164"))
    phone_last_four = models.CharField(
        _("phone last four digits"), max_length=4, editable=False
    )
    email = models.EmailField(_("email"), blank=True)

    # Verification
    phone_verified_at = models.DateTimeField(_("phone verified at"), null=True, blank=True)
    email_verified_at = models.DateTimeField(_("email verified at"), null=True, blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("customer")
        verbose_name_plural = _("customers")
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["wholesaler", "phone"],
                name="portalman_unique_customer_phone",
            ),
        ]
        indexes = [
            models.Index(
                fields=["wholesaler", "phone_last_four"],
                name="portalman_c_wholesa_5d1f0e_idx",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.masked_phone})"

    @property
    def masked_phone(self) -> str:
        from portalman.utils import mask_phone

        return mask_phone(self.phone)

    @property
    def has_email(self) -> bool:
        return bool(self.email)

    def save(self, *args, **kwargs):
        from portalman.utils import last_four, normalize_phone

        self.phone = normalize_phone(self.phone)
        self.phone_last_four = last_four(self.phone)
        if self.email:
            self.email = self.email.lower().strip()
        super().save(*args, **kwargs)

    def mark_verified(self, channel: str):
        """Stamp the contact behind ``channel`` ("sms" or "email") as verified."""
        field = "email_verified_at" if channel == "email" else "phone_verified_at"
        setattr(self, field, timezone.now())
        self.save(update_fields=[field, "updated_at"])

    def to_public_dict(self) -> dict:
        """Customer payload returned to the portal (contacts masked)."""
        from portalman.utils import mask_email

        return {
            "id": str(self.uuid),
            "name": self.name,
            "phone": self.masked_phone,
            "email": mask_email(self.email) if self.email else None,
            "hasEmail": self.has_email,
            "businessName": self.business_name or None,
            "wholesalerId": self.wholesaler.code,
        }
