from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.portal.constants import ROLE_CUSTOMER, STAFF_ROLES
from app.portal.db import db_session
from app.portal.models import User
from app.portal.modules.item_requests.service import (
    create_item_request,
    item_request_to_dict,
    list_item_requests,
    list_my_item_requests,
    update_item_request_status,
)
from app.portal.rbac import require_role
from app.portal.utils import json_ok, request_payload

bp = Blueprint("item_requests", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.post("/flow/item-requests")
@require_role(ROLE_CUSTOMER)
def item_request_post():
    s = db_session()
    req = create_item_request(s, _current_user(), request_payload(request))
    s.commit()
    current_app.logger.info("Item request created: id=%s item=%s", req.id, req.item_name)
    return json_ok(item_request_to_dict(req), message="Item request submitted successfully")


@bp.get("/flow/my-item-requests")
@require_role(ROLE_CUSTOMER)
def item_requests_mine():
    s = db_session()
    return json_ok([item_request_to_dict(r) for r in list_my_item_requests(s, _current_user())])


# ---------- Staff ----------
@bp.get("/flow/item-requests")
@require_role(*STAFF_ROLES)
def item_requests_list():
    s = db_session()
    return json_ok([item_request_to_dict(r) for r in list_item_requests(s, request.args.get("status"))])


@bp.patch("/flow/item-requests/<int:request_id>/status")
@require_role(*STAFF_ROLES)
def item_request_status(request_id: int):
    s = db_session()
    payload = request_payload(request)
    req = update_item_request_status(
        s,
        _current_user(),
        request_id,
        payload.get("status"),
        payload.get("rejectionReason"),
        organization_id=current_app.config["ORGANIZATION_ID"],
    )
    s.commit()
    return json_ok(item_request_to_dict(req), message=f"Request {req.status.lower()} successfully")
