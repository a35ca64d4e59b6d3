from __future__ import annotations

from flask import Blueprint, request

from app.portal.constants import STAFF_ROLES
from app.portal.db import db_session
from app.portal.modules.items.service import item_to_dict, list_items
from app.portal.rbac import require_login, require_role
from app.portal.utils import json_ok

bp = Blueprint("items", __name__)


@bp.get("/flow/items")
@require_login
def items_catalog():
    """Active catalog items, for building quote requests."""
    s = db_session()
    return json_ok([item_to_dict(i) for i in list_items(s)])


@bp.get("/admin/items")
@require_role(*STAFF_ROLES)
def items_list():
    s = db_session()
    include_inactive = (request.args.get("include_inactive") or "").strip() == "1"
    return json_ok([item_to_dict(i) for i in list_items(s, include_inactive=include_inactive)])
