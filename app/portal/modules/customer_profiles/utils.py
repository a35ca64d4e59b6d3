"""
Address and profile normalization helpers.
"""
from __future__ import annotations

from typing import Any

from app.portal.constants import DEFAULT_COUNTRY

ADDRESS_FIELDS = ("street", "city", "state", "country", "pincode")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def blank_address(street: str = "", country: str = DEFAULT_COUNTRY) -> dict[str, str]:
    return {"street": street, "city": "", "state": "", "country": country, "pincode": ""}


def clean_address(raw: Any) -> dict[str, str] | None:
    """
    Keep only the known address keys (stringified, stripped).
    Returns None for anything that is not a non-empty mapping.
    """
    if not isinstance(raw, dict) or not raw:
        return None
    out = {}
    for key in ADDRESS_FIELDS:
        v = raw.get(key)
        out[key] = "" if v is None else str(v).strip()
    return out


def address_line(addr: dict | None) -> str:
    """
    One-line summary used when the profile has no free-text address:
    "street, city" when a street is present, else "".
    """
    if not addr or not addr.get("street"):
        return ""
    return f"{addr.get('street', '')}, {addr.get('city', '')}"
