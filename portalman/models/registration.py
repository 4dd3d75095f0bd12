"""RegistrationRequest model - access requests from unregistered customers."""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _


class RegistrationStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    APPROVED = "approved", _("Approved")
    REJECTED = "rejected", _("Rejected")


class RegistrationRequest(models.Model):
    """
    Customer-initiated request to join a wholesaler's customer list.

    Created when the phone match finds nobody. Stays outside the customer
    directory until the wholesaler approves it; approval creates the
    Customer and links it here.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    wholesaler = models.ForeignKey(
        "portalman.Wholesaler",
        on_delete=models.CASCADE,
        related_name="registration_requests",
        verbose_name=_("wholesaler"),
    )

    customer_name = models.CharField(_("customer name"), max_length=200)
    customer_phone = models.CharField(_("customer phone"), max_length=20)
    customer_email = models.EmailField(_("customer email"), blank=True)
    business_name = models.CharField(_("business name"), max_length=200, blank=True)
    request_message = models.TextField(_("request message"), blank=True)

    status = models.CharField(
        _("status"),
        max_length=10,
        choices=RegistrationStatus.choices,
        default=RegistrationStatus.PENDING,
        db_index=True,
    )
    requested_at = models.DateTimeField(_("requested at"), auto_now_add=True, db_index=True)
    responded_at = models.DateTimeField(_("responded at"), null=True, blank=True)
    response_message = models.TextField(_("response message"), blank=True)
    responded_by = models.CharField(_("responded by"), max_length=255, blank=True)

    customer = models.ForeignKey(
        "portalman.Customer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registration_requests",
        verbose_name=_("customer"),
    )

    class Meta:
        db_table = "portalman_registration_request"
        verbose_name = _("registration request")
        verbose_name_plural = _("registration requests")
        ordering = ["-requested_at"]
        indexes = [
            models.Index(
                fields=["wholesaler", "status"],
                name="portalman_r_wholesa_2a9e7c_idx",
            ),
            models.Index(
                fields=["wholesaler", "customer_phone"],
                name="portalman_r_wholesa_f47d13_idx",
            ),
        ]

    def __str__(self):
        return f"{self.customer_name} -> {self.wholesaler.code} [{self.status}]"

    @property
    def is_pending(self) -> bool:
        return self.status == RegistrationStatus.PENDING

    def save(self, *args, **kwargs):
        from portalman.utils import normalize_phone

        self.customer_phone = normalize_phone(self.customer_phone)
        if self.customer_email:
            self.customer_email = self.customer_email.lower().strip()
        super().save(*args, **kwargs)
