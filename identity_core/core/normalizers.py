"""Normalization helpers for identity lookup keys."""

from __future__ import annotations

import re

_TAG_STRIPPING_DOMAINS = {"gmail.com", "googlemail.com"}


def normalize_email(value: str | None) -> str:
    """Lowercase and trim an email, dropping ``+tag`` suffixes for Gmail domains."""
    email = (value or "").strip().lower()
    if not email:
        return ""
    parts = email.split("@")
    if len(parts) != 2:
        return email
    local_part, domain = parts
    if domain in _TAG_STRIPPING_DOMAINS and "+" in local_part:
        local_part = local_part.split("+", 1)[0]
    return f"{local_part}@{domain}"


def normalize_phone(value: str | None) -> str | None:
    """Return digits-only phone (``+`` kept when leading), or ``None`` when blank."""
    phone = (value or "").strip()
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    # Local Bangladesh mobile numbers: 01XXXXXXXXX -> +8801XXXXXXXXX
    if phone.startswith("01") and len(phone) == 11:
        return f"+88{phone}"
    if phone.startswith("+"):
        return f"+{digits}"
    return digits
