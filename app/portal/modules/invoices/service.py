"""
Invoice reconciliation.

Payments are applied in a single read-modify-write pass:

    amount_paid  += payment
    balance_due   = total - amount_paid
    status        = Paid            when balance_due <= 0 (balance clamped to 0)
                    Partially Paid  when something has been paid

Every payment also appends an InvoicePayment row, a numbered activity log
entry, and a PaymentReceived receipt for the customer. Last write wins;
there is no locking across concurrent payments.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.portal.audit import record_event
from app.portal.errors import Conflict, Forbidden, NotFound, ValidationError
from app.portal.modules.customer_profiles.service import customer_display_name, find_all_customers
from app.portal.modules.invoices.models import Invoice, InvoiceActivityLog, InvoiceLine, InvoicePayment
from app.portal.modules.invoices.utils import (
    STATUS_DRAFT,
    STATUS_OVERDUE,
    STATUS_PAID,
    STATUS_PARTIALLY_PAID,
    STATUS_SENT,
    STATUS_VOID,
    compute_gst,
    effective_status,
)
from app.portal.modules.payments.service import record_receipt
from app.portal.modules.quotes.service import get_quote, mark_invoiced
from app.portal.utils import check_money_range, format_inr, iso, money, money_out, to_decimal

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.portal.models import User
    from app.portal.modules.customer_profiles.models import Customer

logger = logging.getLogger(__name__)


def format_invoice_number(invoice_id: int) -> str:
    return f"INV-{invoice_id:06d}"


def _staff_label(user: "User") -> str:
    return user.name or user.email


def _customer_label(customer: "Customer | None") -> str:
    if customer is None:
        return "Customer"
    return customer.name or customer.email or "Customer"


def add_activity(
    invoice: Invoice,
    action: str,
    description: str,
    user_label: str,
    when: datetime | None = None,
) -> InvoiceActivityLog:
    entry = InvoiceActivityLog(
        sequence=len(invoice.activity_logs) + 1,
        timestamp=when or datetime.utcnow(),
        action=action,
        description=description,
        user=user_label,
    )
    invoice.activity_logs.append(entry)
    return entry


# ---------- Customer reads ----------
def list_customer_invoices(s: "Session", user: "User") -> list[Invoice]:
    customers = find_all_customers(s, user)
    logger.debug(
        "Invoice lookup user_id=%s email=%s matched_customers=%s",
        getattr(user, "id", None),
        getattr(user, "email", None),
        [c.id for c in customers],
    )
    if not customers:
        return []
    return (
        s.query(Invoice)
        .filter(Invoice.customer_id.in_([c.id for c in customers]))
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .all()
    )


def get_customer_invoice(s: "Session", user: "User", invoice_id: int) -> Invoice:
    customers = find_all_customers(s, user)
    if not customers:
        raise Forbidden("Unauthorized")
    invoice = s.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound("Invoice not found")
    if invoice.customer_id not in {c.id for c in customers}:
        raise Forbidden("Unauthorized")
    return invoice


# ---------- Payment reconciliation ----------
def resolve_payment_amount(raw: Any, invoice: Invoice) -> Decimal:
    """
    Explicit positive amount wins; otherwise pay the outstanding balance,
    falling back to the invoice total.
    """
    amount = to_decimal(raw)
    if amount is None and raw not in (None, ""):
        raise ValidationError("Invalid payment amount")
    if amount is not None and amount < 0:
        raise ValidationError("Payment amount cannot be negative")
    if amount is not None:
        check_money_range(amount, "Payment amount")
    if not amount:
        amount = invoice.balance_due if (invoice.balance_due or 0) > 0 else invoice.total
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Nothing to pay on this invoice")
    check_money_range((invoice.amount_paid or 0) + amount, "Total paid on this invoice")
    return amount


def apply_payment(
    invoice: Invoice,
    amount: Decimal,
    *,
    user_label: str,
    payment_mode: str = "online",
    reference: str = "",
    notes: str = "",
    currency_symbol: str = "₹",
    when: datetime | None = None,
) -> InvoicePayment:
    """Apply a payment to the invoice totals/status. No session access."""
    when = when or datetime.utcnow()
    new_amount_paid = money((invoice.amount_paid or 0) + amount)
    new_balance_due = money((invoice.total or 0) - new_amount_paid)

    payment = InvoicePayment(
        date=when,
        amount=amount,
        payment_mode=payment_mode,
        reference=reference,
        notes=notes,
    )
    invoice.payments.append(payment)

    invoice.amount_paid = new_amount_paid
    invoice.balance_due = new_balance_due
    if new_balance_due <= 0:
        invoice.status = STATUS_PAID
        invoice.balance_due = Decimal("0.00")
    elif new_amount_paid > 0:
        invoice.status = STATUS_PARTIALLY_PAID

    add_activity(
        invoice,
        "payment_recorded",
        f"Payment of {currency_symbol}{format_inr(amount)} recorded",
        user_label,
        when=when,
    )
    invoice.updated_at = when
    return payment


def record_payment(
    s: "Session",
    user: "User",
    invoice_id: int,
    raw_amount: Any = None,
    *,
    currency_symbol: str = "₹",
) -> Invoice:
    """Customer pays (part of) one of their invoices."""
    invoice = get_customer_invoice(s, user, invoice_id)
    if invoice.status == STATUS_VOID:
        raise Conflict("Cannot pay a void invoice")
    if invoice.status == STATUS_PAID:
        raise Conflict("Invoice is already paid")

    amount = resolve_payment_amount(raw_amount, invoice)
    customer = invoice.customer
    now = datetime.utcnow()

    apply_payment(
        invoice,
        amount,
        user_label=_customer_label(customer),
        notes="Payment recorded by customer",
        currency_symbol=currency_symbol,
        when=now,
    )
    s.flush()
    receipt = record_receipt(
        s,
        customer=customer,
        amount=amount,
        invoice=invoice,
        notes="Payment recorded by customer",
        when=now,
    )

    record_event(
        s,
        actor=user,
        action="invoice.payment",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={
            "invoice_number": invoice.invoice_number,
            "amount": str(amount),
            "amount_paid": str(invoice.amount_paid),
            "balance_due": str(invoice.balance_due),
            "status": invoice.status,
            "receipt": receipt.payment_number,
        },
    )
    logger.info(
        "Payment recorded: invoice=%s amount=%s balance_due=%s status=%s",
        invoice.invoice_number,
        amount,
        invoice.balance_due,
        invoice.status,
    )
    return invoice


# ---------- Staff ----------
def create_invoice_from_quote(
    s: "Session",
    user: "User",
    quote_id: int,
    *,
    organization_state_code: str = "27",
    gst_rate: Decimal | str = "18",
    payment_terms_days: int = 30,
    invoice_date: date | None = None,
) -> Invoice:
    quote = get_quote(s, quote_id)
    customer = quote.customer

    issued = invoice_date or date.today()
    sub_total = money(quote.sub_total)
    place = customer.place_of_supply if customer else ""
    cgst, sgst, igst = compute_gst(sub_total, Decimal(str(gst_rate)), place, organization_state_code)
    total = check_money_range(money(sub_total + cgst + sgst + igst), "Invoice total")
    mark_invoiced(s, user, quote)

    now = datetime.utcnow()
    invoice = Invoice(
        customer_id=quote.customer_id,
        customer_name=customer_display_name(customer) if customer else quote.customer_name,
        quote_id=quote.id,
        organization_id=quote.organization_id,
        invoice_date=issued,
        due_date=issued + timedelta(days=payment_terms_days),
        status=STATUS_DRAFT,
        billing_address=quote.billing_address,
        shipping_address=quote.shipping_address,
        place_of_supply=place or "",
        sub_total=sub_total,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total=total,
        amount_paid=Decimal("0.00"),
        balance_due=total,
        created_at=now,
        updated_at=now,
    )
    invoice.lines = [
        InvoiceLine(
            position=line.position,
            name=line.name,
            description=line.description,
            quantity=line.quantity,
            rate=line.rate,
            amount=line.amount,
            unit=line.unit,
        )
        for line in quote.lines
    ]
    s.add(invoice)
    s.flush()
    invoice.invoice_number = format_invoice_number(invoice.id)
    add_activity(invoice, "invoice_created", f"Invoice created from quote {quote.quote_number}", _staff_label(user), when=now)

    record_event(
        s,
        actor=user,
        action="invoice.create",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={"invoice_number": invoice.invoice_number, "quote_id": quote.id, "total": str(total)},
    )
    return invoice


def get_invoice(s: "Session", invoice_id: int) -> Invoice:
    invoice = s.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound("Invoice not found")
    return invoice


def mark_sent(s: "Session", user: "User", invoice_id: int) -> Invoice:
    invoice = get_invoice(s, invoice_id)
    if invoice.status == STATUS_SENT:
        return invoice
    if invoice.status != STATUS_DRAFT:
        raise Conflict(f"Only draft invoices can be sent (status: {invoice.status})")
    invoice.status = STATUS_SENT
    invoice.updated_at = datetime.utcnow()
    add_activity(invoice, "invoice_sent", "Invoice marked as sent", _staff_label(user))
    record_event(
        s,
        actor=user,
        action="invoice.send",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={"invoice_number": invoice.invoice_number},
    )
    return invoice


def send_payment_link(s: "Session", user: "User", invoice_id: int) -> Invoice:
    """Log that the customer was sent a link to pay the outstanding balance."""
    invoice = get_invoice(s, invoice_id)
    if invoice.status in (STATUS_VOID, STATUS_PAID):
        raise Conflict(f"No payment is due on this invoice (status: {invoice.status})")
    recipient = invoice.customer.email if invoice.customer and invoice.customer.email else "customer"
    add_activity(invoice, "payment_link_sent", f"Payment link sent to {recipient}", _staff_label(user))
    invoice.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="invoice.payment_link",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={"invoice_number": invoice.invoice_number, "recipient": recipient},
    )
    return invoice


def void_invoice(s: "Session", user: "User", invoice_id: int, reason: str | None = None) -> Invoice:
    invoice = get_invoice(s, invoice_id)
    if invoice.status == STATUS_VOID:
        raise Conflict("Invoice is already void")
    if (invoice.amount_paid or 0) > 0:
        raise Conflict("Invoices with recorded payments cannot be voided")
    invoice.status = STATUS_VOID
    invoice.balance_due = Decimal("0.00")
    invoice.updated_at = datetime.utcnow()
    add_activity(
        invoice,
        "invoice_voided",
        f"Invoice voided: {reason}" if reason else "Invoice voided",
        _staff_label(user),
    )
    record_event(
        s,
        actor=user,
        action="invoice.void",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        reason=reason,
        metadata={"invoice_number": invoice.invoice_number},
    )
    return invoice


def list_invoices(s: "Session", status: str | None = None, today: date | None = None) -> list[Invoice]:
    q = s.query(Invoice)
    status = (status or "").strip().lower()
    overdue = status == STATUS_OVERDUE.lower()
    if status and status != "all" and not overdue:
        q = q.filter(func.lower(Invoice.status) == status)
    invoices = q.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()
    if overdue:
        invoices = [
            inv for inv in invoices
            if effective_status(inv.status, inv.due_date, inv.balance_due, today) == STATUS_OVERDUE
        ]
    return invoices


# ---------- Serialization ----------
def invoice_to_dict(inv: Invoice, today: date | None = None) -> dict:
    return {
        "id": str(inv.id),
        "invoiceNumber": inv.invoice_number,
        "customerId": str(inv.customer_id),
        "customerName": inv.customer_name,
        "quoteId": str(inv.quote_id) if inv.quote_id is not None else None,
        "organizationId": inv.organization_id,
        "date": iso(inv.invoice_date),
        "dueDate": iso(inv.due_date),
        "status": effective_status(inv.status, inv.due_date, inv.balance_due, today),
        "billingAddress": inv.billing_address,
        "shippingAddress": inv.shipping_address,
        "placeOfSupply": inv.place_of_supply,
        "items": [
            {
                "id": str(line.position),
                "name": line.name,
                "description": line.description,
                "quantity": float(line.quantity),
                "rate": money_out(line.rate),
                "amount": money_out(line.amount),
                "unit": line.unit,
            }
            for line in inv.lines
        ],
        "subTotal": money_out(inv.sub_total),
        "cgst": money_out(inv.cgst),
        "sgst": money_out(inv.sgst),
        "igst": money_out(inv.igst),
        "total": money_out(inv.total),
        "amount": money_out(inv.total),
        "amountPaid": money_out(inv.amount_paid),
        "balanceDue": money_out(inv.balance_due),
        "payments": [
            {
                "id": str(p.id),
                "date": iso(p.date),
                "amount": money_out(p.amount),
                "paymentMode": p.payment_mode,
                "reference": p.reference,
                "notes": p.notes,
            }
            for p in inv.payments
        ],
        "activityLogs": [
            {
                "id": str(a.sequence),
                "timestamp": iso(a.timestamp),
                "action": a.action,
                "description": a.description,
                "user": a.user,
            }
            for a in inv.activity_logs
        ],
        "createdAt": iso(inv.created_at),
        "updatedAt": iso(inv.updated_at),
    }
