from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from app.portal.modules.items.models import Item
from app.portal.utils import iso, money_out

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.portal.modules.item_requests.models import ItemRequest


# Catalog defaults for items added from an approved request. Staff price them afterwards.
REQUESTED_ITEM_DEFAULTS = {
    "type": "goods",
    "usage_unit": "pcs",
    "rate": Decimal("0"),
    "purchase_rate": Decimal("0"),
    "tax_preference": "taxable",
    "intra_state_tax": "GST18",
    "inter_state_tax": "IGST18",
    "is_active": True,
}


def create_item_from_request(s: "Session", item_request: "ItemRequest", organization_id: str = "1") -> Item:
    now = datetime.utcnow()
    item = Item(
        name=item_request.item_name,
        description=item_request.description or "",
        organization_id=organization_id,
        created_at=now,
        updated_at=now,
        **REQUESTED_ITEM_DEFAULTS,
    )
    s.add(item)
    s.flush()
    return item


def list_items(s: "Session", include_inactive: bool = False) -> list[Item]:
    q = s.query(Item)
    if not include_inactive:
        q = q.filter(Item.is_active.is_(True))
    return q.order_by(Item.name.asc(), Item.id.asc()).all()


def item_to_dict(item: Item) -> dict:
    return {
        "id": str(item.id),
        "name": item.name,
        "description": item.description,
        "type": item.type,
        "usageUnit": item.usage_unit,
        "rate": money_out(item.rate),
        "purchaseRate": money_out(item.purchase_rate),
        "taxPreference": item.tax_preference,
        "intraStateTax": item.intra_state_tax,
        "interStateTax": item.inter_state_tax,
        "isActive": item.is_active,
        "organizationId": item.organization_id,
        "createdAt": iso(item.created_at),
        "updatedAt": iso(item.updated_at),
    }
