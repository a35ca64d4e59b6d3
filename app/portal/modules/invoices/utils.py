from __future__ import annotations

from datetime import date
from decimal import Decimal

from app.portal.utils import money

STATUS_DRAFT = "Draft"
STATUS_SENT = "Sent"
STATUS_PARTIALLY_PAID = "Partially Paid"
STATUS_PAID = "Paid"
STATUS_VOID = "Void"
STATUS_OVERDUE = "Overdue"  # display only

STORED_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_PARTIALLY_PAID, STATUS_PAID, STATUS_VOID)
OPEN_STATUSES = (STATUS_SENT, STATUS_PARTIALLY_PAID)


def compute_gst(
    sub_total: Decimal,
    rate_percent: Decimal,
    place_of_supply: str | None,
    organization_state_code: str,
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Returns (cgst, sgst, igst).

    Intra-state supply (place of supply is the organization's own state, or
    unknown) splits the rate evenly into CGST + SGST; inter-state supply is
    charged as IGST.
    """
    place = (place_of_supply or "").strip()
    if not place or place == organization_state_code:
        half = money(sub_total * rate_percent / Decimal("200"))
        return half, half, Decimal("0.00")
    return Decimal("0.00"), Decimal("0.00"), money(sub_total * rate_percent / Decimal("100"))


def effective_status(status: str, due_date: date | None, balance_due: Decimal, today: date | None = None) -> str:
    """Open invoices past their due date with money owing show as Overdue."""
    today = today or date.today()
    if status in OPEN_STATUSES and due_date and due_date < today and (balance_due or 0) > 0:
        return STATUS_OVERDUE
    return status
