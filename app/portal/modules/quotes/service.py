from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from app.portal.audit import record_event
from app.portal.errors import Conflict, Forbidden, NotFound, ValidationError
from app.portal.modules.customer_profiles.service import (
    customer_display_name,
    find_all_customers,
    find_customer,
)
from app.portal.modules.customer_profiles.utils import blank_address
from app.portal.modules.quotes.models import Quote, QuoteLine
from app.portal.utils import MAX_MONEY, check_money_range, clean_str, iso, money, money_out, to_decimal

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.portal.models import User


STATUS_DRAFT = "Draft"
STATUS_SENT = "Sent"
STATUS_APPROVED = "Approved"
STATUS_SCRAPPED = "Scrapped"
STATUS_INVOICED = "Invoiced"
VALID_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_APPROVED, STATUS_SCRAPPED, STATUS_INVOICED)

# Once a quote reaches one of these it is frozen for customers.
CLOSED_STATUSES = (STATUS_SCRAPPED, STATUS_INVOICED)

# Numeric(12, 3) quantity column.
MAX_QUANTITY = Decimal("999999999.999")


def format_quote_number(quote_id: int) -> str:
    return f"QT-{quote_id:06d}"


def build_quote_lines(items: Any) -> list[QuoteLine]:
    """
    Turn the raw request items into quote lines.
    quantity defaults to 1, rate to 0, unit to "pcs"; amount = quantity * rate.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    lines: list[QuoteLine] = []
    for idx, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {idx} is invalid")
        name = clean_str(raw.get("name"))
        if not name:
            raise ValidationError(f"Item {idx}: name is required")

        quantity = to_decimal(raw.get("quantity"))
        if quantity is None or quantity == 0:
            quantity = Decimal("1")
        rate = to_decimal(raw.get("rate"), Decimal("0"))
        if quantity < 0 or rate < 0:
            raise ValidationError(f"Item {idx}: quantity and rate cannot be negative")
        if quantity > MAX_QUANTITY or rate > MAX_MONEY or quantity * rate > MAX_MONEY:
            raise ValidationError(f"Item {idx}: quantity or rate is too large")

        lines.append(
            QuoteLine(
                position=idx,
                name=name,
                description=clean_str(raw.get("description")),
                quantity=quantity,
                rate=money(rate),
                amount=money(quantity * rate),
                unit=clean_str(raw.get("unit")) or "pcs",
            )
        )
    return lines


def request_quote(s: "Session", user: "User", items: Any, organization_id: str = "1") -> Quote:
    """Customer asks for a quote on a list of items. Creates a Draft quote."""
    customer = find_customer(s, user)
    if not customer:
        raise ValidationError("Please complete your profile first")

    lines = build_quote_lines(items)
    total = check_money_range(money(sum((line.amount for line in lines), Decimal("0"))), "Quote total")

    billing = customer.billing_address or blank_address(street=customer.address or "", country="")
    shipping = customer.shipping_address or customer.billing_address or blank_address(
        street=customer.address or "", country=""
    )

    now = datetime.utcnow()
    quote = Quote(
        customer_id=customer.id,
        customer_name=customer_display_name(customer),
        billing_address=dict(billing),
        shipping_address=dict(shipping),
        organization_id=organization_id,
        date=now,
        status=STATUS_DRAFT,
        sub_total=total,
        total=total,
        created_at=now,
        updated_at=now,
    )
    quote.lines = lines
    s.add(quote)
    s.flush()
    quote.quote_number = format_quote_number(quote.id)

    record_event(
        s,
        actor=user,
        action="quote.request",
        entity_type="Quote",
        entity_id=str(quote.id),
        metadata={"quote_number": quote.quote_number, "customer_id": customer.id, "total": str(total)},
    )
    return quote


def list_customer_quotes(s: "Session", user: "User") -> list[Quote]:
    customer_ids = [c.id for c in find_all_customers(s, user)]
    if not customer_ids:
        return []
    return (
        s.query(Quote)
        .filter(Quote.customer_id.in_(customer_ids))
        .order_by(Quote.created_at.desc(), Quote.id.desc())
        .all()
    )


def list_quotes(s: "Session", status: str | None = None) -> list[Quote]:
    q = s.query(Quote)
    status = (status or "").strip()
    if status and status.lower() != "all":
        q = q.filter(Quote.status == status)
    return q.order_by(Quote.created_at.desc(), Quote.id.desc()).all()


def get_quote(s: "Session", quote_id: int) -> Quote:
    quote = s.get(Quote, quote_id)
    if not quote:
        raise NotFound("Quote not found")
    return quote


def _owned_quote(s: "Session", user: "User", quote_id: int, forbidden_message: str) -> Quote:
    customers = find_all_customers(s, user)
    if not customers:
        raise Forbidden("Unauthorized")
    quote = get_quote(s, quote_id)
    if quote.customer_id not in {c.id for c in customers}:
        raise Forbidden(forbidden_message)
    return quote


def _set_status(s: "Session", user: "User", quote: Quote, status: str, action: str) -> Quote:
    old = quote.status
    quote.status = status
    quote.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action=action,
        entity_type="Quote",
        entity_id=str(quote.id),
        metadata={"quote_number": quote.quote_number, "old_status": old, "new_status": status},
    )
    return quote


def approve_quote(s: "Session", user: "User", quote_id: int) -> Quote:
    quote = _owned_quote(s, user, quote_id, "Unauthorized: This quote belongs to another customer")
    if quote.status in CLOSED_STATUSES:
        raise Conflict(f"Quote is already {quote.status.lower()}")
    return _set_status(s, user, quote, STATUS_APPROVED, "quote.approve")


def reject_quote(s: "Session", user: "User", quote_id: int) -> Quote:
    quote = _owned_quote(s, user, quote_id, "Unauthorized")
    if quote.status == STATUS_INVOICED:
        raise Conflict("Quote is already invoiced")
    return _set_status(s, user, quote, STATUS_SCRAPPED, "quote.reject")


def scrap_quote(s: "Session", user: "User", quote_id: int) -> Quote:
    """Staff scrap. Works on any quote that has not been invoiced."""
    quote = get_quote(s, quote_id)
    if quote.status == STATUS_INVOICED:
        raise Conflict("Quote is already invoiced")
    return _set_status(s, user, quote, STATUS_SCRAPPED, "quote.scrap")


def send_quote(s: "Session", user: "User", quote_id: int) -> Quote:
    quote = get_quote(s, quote_id)
    if quote.status not in (STATUS_DRAFT, STATUS_SENT):
        raise Conflict(f"Only draft quotes can be sent (status: {quote.status})")
    return _set_status(s, user, quote, STATUS_SENT, "quote.send")


def mark_invoiced(s: "Session", user: "User", quote: Quote) -> Quote:
    if quote.status != STATUS_APPROVED:
        raise Conflict("Only approved quotes can be invoiced")
    return _set_status(s, user, quote, STATUS_INVOICED, "quote.invoiced")


def quote_line_to_dict(line: QuoteLine) -> dict:
    return {
        "id": str(line.position),
        "name": line.name,
        "description": line.description,
        "quantity": float(line.quantity),
        "rate": money_out(line.rate),
        "amount": money_out(line.amount),
        "unit": line.unit,
    }


def quote_to_dict(q: Quote) -> dict:
    return {
        "id": str(q.id),
        "quoteNumber": q.quote_number,
        "customerId": str(q.customer_id),
        "customerName": q.customer_name,
        "billingAddress": q.billing_address,
        "shippingAddress": q.shipping_address,
        "organizationId": q.organization_id,
        "date": iso(q.date),
        "status": q.status,
        "items": [quote_line_to_dict(line) for line in q.lines],
        "subTotal": money_out(q.sub_total),
        "total": money_out(q.total),
        "createdAt": iso(q.created_at),
        "updatedAt": iso(q.updated_at),
    }
