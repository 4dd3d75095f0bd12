"""Contact normalization and masking helpers."""

import re

LAST_FOUR_LENGTH = 4
CODE_LENGTH = 6


def digits_only(value: str | None, limit: int | None = None) -> str:
    """Drop every non-digit character, optionally truncating to ``limit``."""
    digits = "".join(ch for ch in (value or "") if ch in "0123456789")
    return digits[:limit] if limit is not None else digits


def normalize_phone(value: str | None, contact_type: str | None = None) -> str:
    """
    Normalize a phone number to E.164 (emails are lower-cased).

    Numbers without an international prefix get DEFAULT_COUNTRY_CODE;
    a national trunk "0" is dropped ("07507 659550" -> "+447507659550").
    """
    if not value:
        return ""

    value = value.strip()
    if contact_type == "email" or "@" in value:
        return value.lower()

    cleaned = re.sub(r"[^\d+]", "", value)
    if not cleaned:
        return ""
    if cleaned.startswith("+"):
        return "+" + digits_only(cleaned)
    if cleaned.startswith("00"):
        return "+" + cleaned[2:]

    from portalman.conf import portalman_settings

    country = digits_only(portalman_settings.DEFAULT_COUNTRY_CODE)
    if cleaned.startswith("0"):
        return f"+{country}{cleaned[1:]}"
    if cleaned.startswith(country) and len(cleaned) > 10:
        return f"+{cleaned}"
    return f"+{country}{cleaned}"


def last_four(phone: str | None) -> str:
    digits = digits_only(phone)
    return digits[-LAST_FOUR_LENGTH:] if len(digits) >= LAST_FOUR_LENGTH else ""


def mask_phone(phone: str | None) -> str:
    """Masked phone for safe display ("***9550")."""
    if phone and len(phone) > 4:
        return "***" + phone[-4:]
    return "****"


def mask_email(email: str | None) -> str:
    """Masked email for safe display ("j***e@example.com")."""
    parts = (email or "").split("@")
    if len(parts) == 2:
        local, domain = parts
        masked = local[0] + "***" + local[-1] if len(local) > 2 else "***"
        return f"{masked}@{domain}"
    return "***@***"
