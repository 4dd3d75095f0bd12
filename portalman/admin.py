"""Portalman admin.

Registration requests are approved or rejected through admin actions,
which go through services.registration.respond so the same gates and
signals apply as for any other caller.
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from portalman.exceptions import PortalError
from portalman.models import (
    Customer,
    RegistrationRequest,
    RegistrationStatus,
    VerificationChallenge,
    Wholesaler,
)


# ===========================================
# Wholesaler Admin
# ===========================================


@admin.register(Wholesaler)
class WholesalerAdmin(admin.ModelAdmin):
    list_display = ["code", "business_name", "is_active", "customer_count", "pending_count"]
    list_filter = ["is_active"]
    search_fields = ["code", "business_name"]
    readonly_fields = ["uuid", "created_at", "updated_at"]

    def customer_count(self, obj):
        return obj.customers.count()

    customer_count.short_description = "Customers"

    def pending_count(self, obj):
        return obj.registration_requests.filter(status=RegistrationStatus.PENDING).count()

    pending_count.short_description = "Pending requests"


# ===========================================
# Customer Admin
# ===========================================


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "wholesaler",
        "masked_phone",
        "email",
        "verified_badge",
        "is_active",
    ]
    list_filter = ["wholesaler", "is_active"]
    search_fields = ["name", "business_name", "phone", "email"]
    list_editable = ["is_active"]
    raw_id_fields = ["wholesaler"]
    readonly_fields = [
        "uuid",
        "phone_last_four",
        "phone_verified_at",
        "email_verified_at",
        "created_at",
        "updated_at",
    ]

    fieldsets = [
        ("Identification", {"fields": ["uuid", "wholesaler", "name", "business_name"]}),
        ("Contact", {"fields": ["phone", "phone_last_four", "email"]}),
        ("Verification", {"fields": ["phone_verified_at", "email_verified_at"]}),
        (
            "System",
            {
                "fields": ["is_active", "metadata", "created_at", "updated_at"],
                "classes": ["collapse"],
            },
        ),
    ]

    def verified_badge(self, obj):
        if obj.phone_verified_at or obj.email_verified_at:
            return format_html('<span style="color: green;">V</span>')
        return format_html('<span style="color: gray;">o</span>')

    verified_badge.short_description = "Verified"


# ===========================================
# VerificationChallenge Admin
# ===========================================


@admin.register(VerificationChallenge)
class VerificationChallengeAdmin(admin.ModelAdmin):
    """Read-only audit view; codes are issued through the portal only."""

    list_display = ["customer", "channel", "status", "attempts", "created_at", "expires_at"]
    list_filter = ["channel"]
    search_fields = ["customer__name", "customer__phone", "destination"]
    readonly_fields = [
        "uuid",
        "customer",
        "channel",
        "destination",
        "created_at",
        "expires_at",
        "consumed_at",
        "superseded_at",
        "attempts",
    ]
    exclude = ["code_hash"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


# ===========================================
# RegistrationRequest Admin
# ===========================================


@admin.register(RegistrationRequest)
class RegistrationRequestAdmin(admin.ModelAdmin):
    list_display = [
        "customer_name",
        "wholesaler",
        "customer_phone",
        "business_name",
        "status",
        "requested_at",
    ]
    list_filter = ["status", "wholesaler"]
    search_fields = ["customer_name", "customer_phone", "customer_email", "business_name"]
    raw_id_fields = ["wholesaler", "customer"]
    readonly_fields = ["uuid", "requested_at", "responded_at", "responded_by", "customer"]
    actions = ["approve_requests", "reject_requests"]

    @admin.action(description="Approve selected requests")
    def approve_requests(self, request, queryset):
        self._respond(request, queryset, "approve")

    @admin.action(description="Reject selected requests")
    def reject_requests(self, request, queryset):
        self._respond(request, queryset, "reject")

    def _respond(self, request, queryset, action):
        from portalman.services import registration

        done = 0
        for item in queryset:
            try:
                registration.respond(
                    str(item.uuid),
                    action,
                    responded_by=request.user.get_username(),
                )
                done += 1
            except PortalError as exc:
                self.message_user(
                    request,
                    f"{item.customer_name}: {exc.message}",
                    level=messages.WARNING,
                )
        if done:
            self.message_user(request, f"{done} request(s) updated.", level=messages.SUCCESS)
