from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from app.portal.modules.customer_profiles.service import find_all_customers
from app.portal.modules.payments.models import PaymentReceived
from app.portal.utils import iso, money_out

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.portal.models import User
    from app.portal.modules.customer_profiles.models import Customer
    from app.portal.modules.invoices.models import Invoice


def format_payment_number(payment_id: int) -> str:
    return f"PR-{payment_id:06d}"


def record_receipt(
    s: "Session",
    *,
    customer: "Customer",
    amount: Decimal,
    invoice: "Invoice | None" = None,
    payment_mode: str = "online",
    reference: str = "",
    notes: str = "",
    when: datetime | None = None,
) -> PaymentReceived:
    receipt = PaymentReceived(
        customer_id=customer.id,
        customer_name=customer.display_name or customer.name,
        invoice_id=invoice.id if invoice else None,
        invoice_number=invoice.invoice_number if invoice else None,
        date=when or datetime.utcnow(),
        amount=amount,
        payment_mode=payment_mode,
        reference=reference,
        notes=notes,
    )
    s.add(receipt)
    s.flush()
    receipt.payment_number = format_payment_number(receipt.id)
    return receipt


def list_customer_receipts(s: "Session", user: "User") -> list[PaymentReceived]:
    customer_ids = [c.id for c in find_all_customers(s, user)]
    if not customer_ids:
        return []
    return (
        s.query(PaymentReceived)
        .filter(PaymentReceived.customer_id.in_(customer_ids))
        .order_by(PaymentReceived.date.desc(), PaymentReceived.id.desc())
        .all()
    )


def list_receipts(s: "Session", customer_id: int | None = None) -> list[PaymentReceived]:
    q = s.query(PaymentReceived)
    if customer_id is not None:
        q = q.filter(PaymentReceived.customer_id == customer_id)
    return q.order_by(PaymentReceived.date.desc(), PaymentReceived.id.desc()).all()


def receipt_to_dict(r: PaymentReceived) -> dict:
    return {
        "id": str(r.id),
        "paymentNumber": r.payment_number,
        "customerId": str(r.customer_id),
        "customerName": r.customer_name,
        "invoiceId": str(r.invoice_id) if r.invoice_id is not None else None,
        "invoiceNumber": r.invoice_number,
        "date": iso(r.date),
        "amount": money_out(r.amount),
        "paymentMode": r.payment_mode,
        "reference": r.reference,
        "notes": r.notes,
    }
