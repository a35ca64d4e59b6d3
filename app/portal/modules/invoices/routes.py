from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.portal.constants import ROLE_CUSTOMER, STAFF_ROLES
from app.portal.db import db_session
from app.portal.models import User
from app.portal.modules.invoices.service import (
    create_invoice_from_quote,
    get_customer_invoice,
    invoice_to_dict,
    list_customer_invoices,
    list_invoices,
    mark_sent,
    record_payment,
    send_payment_link,
    void_invoice,
)
from app.portal.rbac import require_role
from app.portal.utils import clean_str, json_ok, request_payload

bp = Blueprint("invoices", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Customer ----------
@bp.get("/flow/invoices")
@require_role(ROLE_CUSTOMER)
def invoices_mine():
    s = db_session()
    return json_ok([invoice_to_dict(inv) for inv in list_customer_invoices(s, _current_user())])


@bp.get("/flow/invoices/<int:invoice_id>")
@require_role(ROLE_CUSTOMER)
def invoice_detail(invoice_id: int):
    s = db_session()
    return json_ok(invoice_to_dict(get_customer_invoice(s, _current_user(), invoice_id)))


@bp.post("/flow/invoices/<int:invoice_id>/pay")
@require_role(ROLE_CUSTOMER)
def invoice_pay(invoice_id: int):
    s = db_session()
    payload = request_payload(request)
    invoice = record_payment(
        s,
        _current_user(),
        invoice_id,
        payload.get("amount"),
        currency_symbol=current_app.config["CURRENCY_SYMBOL"],
    )
    s.commit()
    return json_ok(invoice_to_dict(invoice), message="Payment successful")


# ---------- Staff ----------
@bp.get("/admin/invoices")
@require_role(*STAFF_ROLES)
def invoices_list():
    s = db_session()
    return json_ok([invoice_to_dict(inv) for inv in list_invoices(s, request.args.get("status"))])


@bp.post("/admin/quotes/<int:quote_id>/invoice")
@require_role(*STAFF_ROLES)
def invoice_from_quote(quote_id: int):
    s = db_session()
    cfg = current_app.config
    invoice = create_invoice_from_quote(
        s,
        _current_user(),
        quote_id,
        organization_state_code=cfg["ORGANIZATION_STATE_CODE"],
        gst_rate=cfg["GST_RATE"],
        payment_terms_days=cfg["PAYMENT_TERMS_DAYS"],
    )
    s.commit()
    current_app.logger.info("Invoice created: %s from quote_id=%s", invoice.invoice_number, quote_id)
    return json_ok(invoice_to_dict(invoice), message="Invoice created", status=201)


@bp.patch("/admin/invoices/<int:invoice_id>/send")
@require_role(*STAFF_ROLES)
def invoice_send(invoice_id: int):
    s = db_session()
    invoice = mark_sent(s, _current_user(), invoice_id)
    s.commit()
    return json_ok(invoice_to_dict(invoice), message="Invoice sent")


@bp.post("/admin/invoices/<int:invoice_id>/send-payment-link")
@require_role(*STAFF_ROLES)
def invoice_payment_link(invoice_id: int):
    s = db_session()
    invoice = send_payment_link(s, _current_user(), invoice_id)
    s.commit()
    return json_ok(invoice_to_dict(invoice), message="Payment link sent")


@bp.post("/admin/invoices/<int:invoice_id>/void")
@require_role(*STAFF_ROLES)
def invoice_void(invoice_id: int):
    s = db_session()
    reason = clean_str(request_payload(request).get("reason")) or None
    invoice = void_invoice(s, _current_user(), invoice_id, reason)
    s.commit()
    return json_ok(invoice_to_dict(invoice), message="Invoice voided")
