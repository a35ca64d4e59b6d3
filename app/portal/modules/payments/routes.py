from __future__ import annotations

from flask import Blueprint, g, request

from app.portal.constants import ROLE_CUSTOMER, STAFF_ROLES
from app.portal.db import db_session
from app.portal.errors import ValidationError
from app.portal.modules.payments.service import list_customer_receipts, list_receipts, receipt_to_dict
from app.portal.rbac import require_role
from app.portal.utils import json_ok

bp = Blueprint("payments", __name__)


@bp.get("/flow/receipts")
@require_role(ROLE_CUSTOMER)
def receipts_mine():
    s = db_session()
    return json_ok([receipt_to_dict(r) for r in list_customer_receipts(s, g.current_user)])


@bp.get("/admin/payments-received")
@require_role(*STAFF_ROLES)
def receipts_list():
    s = db_session()
    customer_id = (request.args.get("customer_id") or "").strip()
    if customer_id and not customer_id.isdigit():
        raise ValidationError("customer_id must be numeric")
    receipts = list_receipts(s, int(customer_id) if customer_id else None)
    return json_ok([receipt_to_dict(r) for r in receipts])
