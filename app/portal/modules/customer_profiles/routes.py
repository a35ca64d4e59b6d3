from __future__ import annotations

from flask import Blueprint, g, request

from app.portal.constants import ROLE_CUSTOMER, STAFF_ROLES
from app.portal.db import db_session
from app.portal.errors import NotFound
from app.portal.models import User
from app.portal.modules.customer_profiles.service import (
    customer_to_dict,
    get_customer_by_id,
    get_profile,
    list_customers,
    upsert_profile,
)
from app.portal.rbac import require_role
from app.portal.utils import json_ok, request_payload

bp = Blueprint("customer_profiles", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Customer self-service ----------
@bp.post("/flow/profile")
@require_role(ROLE_CUSTOMER)
def profile_post():
    s = db_session()
    u = _current_user()
    customer, _created = upsert_profile(s, u, request_payload(request))
    s.commit()
    return json_ok(customer_to_dict(customer), message="Profile updated successfully")


@bp.get("/flow/profile")
@require_role(ROLE_CUSTOMER)
def profile_get():
    s = db_session()
    customer = get_profile(s, _current_user())
    return json_ok(customer_to_dict(customer))


# ---------- Staff ----------
@bp.get("/admin/customers")
@require_role(*STAFF_ROLES)
def customers_list():
    s = db_session()
    customers = list_customers(s, request.args.get("q"))
    return json_ok([customer_to_dict(c) for c in customers])


@bp.get("/admin/customers/<int:customer_id>")
@require_role(*STAFF_ROLES)
def customer_detail(customer_id: int):
    s = db_session()
    customer = get_customer_by_id(s, customer_id)
    if not customer:
        raise NotFound("Customer not found")
    return json_ok(customer_to_dict(customer))
