from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from flask import jsonify

from app.portal.errors import ValidationError

TWO_PLACES = Decimal("0.01")
# Largest value a Numeric(12, 2) column holds.
MAX_MONEY = Decimal("9999999999.99")


def json_ok(data: Any = None, message: str | None = None, status: int = 200):
    """Standard success envelope: {"success": true, "message"?, "data"}."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    return jsonify(body), status


def request_payload(req) -> dict:
    """JSON body if present, else form fields. Never None."""
    payload = req.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return req.form.to_dict() if req.form else {}


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal | None:
    """Parse a number (str/int/float/Decimal) into a Decimal; `default` when missing or invalid."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return default
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    if not d.is_finite():
        return default
    return d


def money(value: Any) -> Decimal:
    d = to_decimal(value, Decimal("0"))
    try:
        return d.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("Amount is out of range") from None


def check_money_range(value: Decimal, label: str = "Amount") -> Decimal:
    if abs(value) > MAX_MONEY:
        raise ValidationError(f"{label} is too large")
    return value


def money_out(value: Decimal | None) -> float:
    """JSON-friendly money value."""
    return float(value or 0)


def format_inr(value: Any) -> str:
    """
    Indian digit grouping (12,34,567.5), trailing fraction zeros dropped.
    """
    d = money(value)
    sign = "-" if d < 0 else ""
    int_part, frac = f"{abs(d):.2f}".split(".")
    frac = frac.rstrip("0")
    head, tail = int_part[:-3], int_part[-3:]
    groups: list[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    grouped = ",".join(groups + [tail])
    return f"{sign}{grouped}.{frac}" if frac else f"{sign}{grouped}"


def iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
