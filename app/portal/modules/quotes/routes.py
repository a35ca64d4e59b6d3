from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.portal.constants import ROLE_CUSTOMER, STAFF_ROLES
from app.portal.db import db_session
from app.portal.models import User
from app.portal.modules.quotes.service import (
    approve_quote,
    list_customer_quotes,
    list_quotes,
    quote_to_dict,
    reject_quote,
    request_quote,
    scrap_quote,
    send_quote,
)
from app.portal.rbac import require_role
from app.portal.utils import json_ok, request_payload

bp = Blueprint("quotes", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Customer ----------
@bp.post("/flow/request")
@require_role(ROLE_CUSTOMER)
def quote_request_post():
    s = db_session()
    u = _current_user()
    payload = request_payload(request)
    quote = request_quote(s, u, payload.get("items"), organization_id=current_app.config["ORGANIZATION_ID"])
    s.commit()
    current_app.logger.info("Quote requested: %s customer_id=%s", quote.quote_number, quote.customer_id)
    return json_ok(quote_to_dict(quote), message="Request received successfully.")


@bp.get("/flow/quotes")
@require_role(ROLE_CUSTOMER)
def quotes_mine():
    s = db_session()
    return json_ok([quote_to_dict(q) for q in list_customer_quotes(s, _current_user())])


@bp.post("/flow/quotes/<int:quote_id>/approve")
@require_role(ROLE_CUSTOMER)
def quote_approve(quote_id: int):
    s = db_session()
    quote = approve_quote(s, _current_user(), quote_id)
    s.commit()
    return json_ok(quote_to_dict(quote), message="Quote approved successfully")


@bp.post("/flow/quotes/<int:quote_id>/reject")
@require_role(ROLE_CUSTOMER)
def quote_reject(quote_id: int):
    s = db_session()
    quote = reject_quote(s, _current_user(), quote_id)
    s.commit()
    return json_ok(quote_to_dict(quote), message="Quote scrapped")


# ---------- Staff ----------
@bp.post("/flow/quotes/<int:quote_id>/scrap")
@require_role(*STAFF_ROLES)
def quote_scrap(quote_id: int):
    s = db_session()
    quote = scrap_quote(s, _current_user(), quote_id)
    s.commit()
    return json_ok(quote_to_dict(quote), message="Quote marked as scrapped")


@bp.get("/admin/quotes")
@require_role(*STAFF_ROLES)
def quotes_list():
    s = db_session()
    return json_ok([quote_to_dict(q) for q in list_quotes(s, request.args.get("status"))])


@bp.post("/admin/quotes/<int:quote_id>/send")
@require_role(*STAFF_ROLES)
def quote_send(quote_id: int):
    s = db_session()
    quote = send_quote(s, _current_user(), quote_id)
    s.commit()
    return json_ok(quote_to_dict(quote), message="Quote sent")
