from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.portal.audit import record_event
from app.portal.errors import NotFound, ValidationError
from app.portal.modules.customer_profiles.service import find_all_customers, find_customer
from app.portal.modules.item_requests.models import ItemRequest
from app.portal.modules.items.service import create_item_from_request
from app.portal.utils import clean_str, iso, to_decimal

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.portal.models import User

logger = logging.getLogger(__name__)

STATUS_PENDING = "Pending"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
VALID_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)
MAX_QUANTITY = 2_147_483_647


def _parse_quantity(raw: Any) -> int:
    if raw in (None, "", 0, "0"):
        return 1
    qty = to_decimal(raw)
    if qty is None or qty != qty.to_integral_value():
        raise ValidationError("Quantity must be a whole number")
    qty = int(qty)
    if qty < 1:
        raise ValidationError("Quantity must be at least 1")
    if qty > MAX_QUANTITY:
        raise ValidationError("Quantity is too large")
    return qty


def create_item_request(s: "Session", user: "User", payload: dict[str, Any]) -> ItemRequest:
    customer = find_customer(s, user)
    if not customer:
        logger.info("Item request without profile: %s", getattr(user, "email", None))
        raise ValidationError("Please complete your profile first")

    item_name = clean_str(payload.get("itemName"))
    if not item_name:
        raise ValidationError("Item name is required")

    now = datetime.utcnow()
    req = ItemRequest(
        customer_id=customer.id,
        customer_name=customer.name,
        customer_email=customer.email,
        company_name=customer.company_name or "",
        contact_number=customer.phone or "",
        item_name=item_name,
        description=clean_str(payload.get("description")),
        quantity=_parse_quantity(payload.get("quantity")),
        status=STATUS_PENDING,
        rejection_reason="",
        created_at=now,
        updated_at=now,
    )
    s.add(req)
    s.flush()
    record_event(
        s,
        actor=user,
        action="item_request.create",
        entity_type="ItemRequest",
        entity_id=str(req.id),
        metadata={"item_name": item_name, "quantity": req.quantity, "customer_id": customer.id},
    )
    return req


def list_item_requests(s: "Session", status: str | None = None) -> list[ItemRequest]:
    q = s.query(ItemRequest)
    status = (status or "").strip()
    if status and status.lower() != "all":
        q = q.filter(func.lower(ItemRequest.status) == status.lower())
    return q.order_by(ItemRequest.created_at.desc(), ItemRequest.id.desc()).all()


def list_my_item_requests(s: "Session", user: "User") -> list[ItemRequest]:
    customer_ids = [c.id for c in find_all_customers(s, user)]
    if not customer_ids:
        return []
    return (
        s.query(ItemRequest)
        .filter(ItemRequest.customer_id.in_(customer_ids))
        .order_by(ItemRequest.created_at.desc(), ItemRequest.id.desc())
        .all()
    )


def update_item_request_status(
    s: "Session",
    user: "User",
    request_id: int,
    status: Any,
    rejection_reason: Any = None,
    organization_id: str = "1",
) -> ItemRequest:
    req = s.get(ItemRequest, request_id)
    if not req:
        raise NotFound("Request not found")

    status = clean_str(status)
    if status not in VALID_STATUSES:
        raise ValidationError(f"Invalid status. Expected one of: {', '.join(VALID_STATUSES)}")

    old = req.status
    req.status = status
    reason = clean_str(rejection_reason)
    if reason:
        req.rejection_reason = reason
    req.updated_at = datetime.utcnow()

    # Only the transition into Approved adds a catalog item.
    if status == STATUS_APPROVED and old != STATUS_APPROVED and req.item_id is None:
        item = create_item_from_request(s, req, organization_id=organization_id)
        req.item_id = item.id
        logger.info("Catalog item %s created from item request %s", item.id, req.id)

    record_event(
        s,
        actor=user,
        action="item_request.status",
        entity_type="ItemRequest",
        entity_id=str(req.id),
        reason=reason or None,
        metadata={"old_status": old, "new_status": status, "item_id": req.item_id},
    )
    return req


def item_request_to_dict(r: ItemRequest) -> dict:
    return {
        "id": str(r.id),
        "customerId": str(r.customer_id),
        "customerName": r.customer_name,
        "customerEmail": r.customer_email,
        "companyName": r.company_name,
        "contactNumber": r.contact_number,
        "itemName": r.item_name,
        "description": r.description,
        "quantity": r.quantity,
        "status": r.status,
        "rejectionReason": r.rejection_reason,
        "itemId": str(r.item_id) if r.item_id is not None else None,
        "createdAt": iso(r.created_at),
        "updatedAt": iso(r.updated_at),
    }
