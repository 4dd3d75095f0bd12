"""Wholesaler model (portal tenant)."""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _


class Wholesaler(models.Model):
    """
    Merchant tenant whose customers authenticate to its portal.

    Owned by the wholesaler-management side; the auth flow only reads it
    to brand the portal and to scope customer lookups.
    """

    code = models.CharField(
        _("code"),
        max_length=64,
        unique=True,
        help_text=_("Public identifier used in portal links"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)

    business_name = models.CharField(_("business name"), max_length=200)
    logo_url = models.URLField(_("logo URL"), max_length=500, blank=True)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("wholesaler")
        verbose_name_plural = _("wholesalers")
        ordering = ["business_name"]

    def __str__(self):
        return f"{self.business_name} ({self.code})"

    @property
    def initials(self) -> str:
        """Up to two initials from the business name (logo placeholder)."""
        words = self.business_name.split()
        return "".join(word[0] for word in words[:2]).upper()
