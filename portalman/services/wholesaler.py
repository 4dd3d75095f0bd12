"""Wholesaler resolver - public profile lookup for portal branding."""

from portalman.models import Wholesaler


def get(code: str) -> Wholesaler | None:
    """Get active wholesaler by public code."""
    try:
        return Wholesaler.objects.get(code=code, is_active=True)
    except Wholesaler.DoesNotExist:
        return None


def profile(wholesaler: Wholesaler) -> dict:
    """Public profile payload (no contact or billing data)."""
    return {
        "id": wholesaler.code,
        "businessName": wholesaler.business_name,
        "logoUrl": wholesaler.logo_url or None,
        "initials": wholesaler.initials,
    }
