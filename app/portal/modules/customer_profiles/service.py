"""
CUSTOMER MATCHING
=================

A portal user is resolved to customer records in two ways:

find_customer(user)       -> ONE record:  first by users.id link, else first by email
find_all_customers(user)  -> ALL records: every users.id link; only when there is
                             none, every record with the user's email

Staff can create customer records before the customer has a portal login, so
email is the fallback key. The first profile save links the matched record to
the user (customers.user_id), after which the id match wins.

The two sets never mix: if any record is linked by user id, email-only records
are ignored by find_all_customers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func

from app.portal.audit import record_event
from app.portal.constants import CUSTOMER_TYPES, GST_TREATMENTS, INDIAN_STATES
from app.portal.errors import NotFound, ValidationError
from app.portal.models import User
from app.portal.modules.customer_profiles.models import Customer
from app.portal.modules.customer_profiles.utils import address_line, blank_address, clean_address, normalize_email
from app.portal.utils import clean_str, iso


def get_customer_by_id(s, customer_id: int) -> Customer | None:
    return s.query(Customer).filter(Customer.id == customer_id).one_or_none()


def find_customer(s, user: User | None) -> Customer | None:
    if not user:
        return None
    c = s.query(Customer).filter(Customer.user_id == user.id).order_by(Customer.id.asc()).first()
    if c:
        return c
    email = normalize_email(user.email)
    if not email:
        return None
    return (
        s.query(Customer)
        .filter(func.lower(Customer.email) == email)
        .order_by(Customer.id.asc())
        .first()
    )


def find_all_customers(s, user: User | None) -> list[Customer]:
    if not user:
        return []
    customers = s.query(Customer).filter(Customer.user_id == user.id).order_by(Customer.id.asc()).all()
    if customers:
        return customers
    email = normalize_email(user.email)
    if not email:
        return []
    return (
        s.query(Customer)
        .filter(func.lower(Customer.email) == email)
        .order_by(Customer.id.asc())
        .all()
    )


def customer_ids_for(s, user: User | None) -> list[int]:
    return [c.id for c in find_all_customers(s, user)]


def validate_profile_payload(payload: dict) -> list[str]:
    """Validate a profile save. Returns list of errors."""
    errors = []
    customer_type = clean_str(payload.get("customerType"))
    if customer_type and customer_type not in CUSTOMER_TYPES:
        errors.append(f"Invalid customer type. Must be one of: {', '.join(CUSTOMER_TYPES)}")
    place = clean_str(payload.get("placeOfSupply"))
    if place and place not in INDIAN_STATES:
        errors.append("Invalid place of supply state code.")
    treatment = clean_str(payload.get("gstTreatment"))
    if treatment and treatment not in GST_TREATMENTS:
        errors.append("Invalid GST treatment.")
    for key in ("billingAddress", "shippingAddress"):
        v = payload.get(key)
        if v is not None and not isinstance(v, dict):
            errors.append(f"{key} must be an object.")
    return errors


def _profile_fields(user: User, payload: dict) -> dict[str, Any]:
    address_in = clean_str(payload.get("address"))
    billing = clean_address(payload.get("billingAddress"))
    shipping = clean_address(payload.get("shippingAddress"))

    return {
        "name": clean_str(payload.get("name")) or (user.name or "").strip() or "Unknown",
        "email": normalize_email(user.email) or None,
        "phone": clean_str(payload.get("phone")),
        "address": address_in or address_line(billing),
        "company_name": clean_str(payload.get("companyName")),
        "billing_address": billing or blank_address(street=address_in),
        "shipping_address": shipping or billing or blank_address(street=address_in),
        "gstin": clean_str(payload.get("gstin")).upper(),
        "gst_treatment": clean_str(payload.get("gstTreatment")) or None,
        "place_of_supply": clean_str(payload.get("placeOfSupply")),
        "customer_type": clean_str(payload.get("customerType")) or "business",
        "user_id": user.id,
    }


def upsert_profile(s, user: User, payload: dict) -> tuple[Customer, bool]:
    """
    Create the user's customer profile, or overwrite the matched one.
    Returns (customer, created).
    """
    errors = validate_profile_payload(payload)
    if errors:
        raise ValidationError(errors[0], details=errors)

    now = datetime.utcnow()
    fields = _profile_fields(user, payload)
    customer = find_customer(s, user)
    created = customer is None

    if created:
        customer = Customer(created_at=now, **fields)
        s.add(customer)
    else:
        for attr, value in fields.items():
            setattr(customer, attr, value)
    customer.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="customer.profile_create" if created else "customer.profile_update",
        entity_type="Customer",
        entity_id=str(customer.id),
        metadata={"name": customer.name, "email": customer.email},
    )
    return customer, created


def get_profile(s, user: User) -> Customer:
    customer = find_customer(s, user)
    if not customer:
        raise NotFound("Profile not found")
    return customer


def list_customers(s, q: str | None = None) -> list[Customer]:
    query = s.query(Customer)
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(
            (Customer.name.ilike(like))
            | (Customer.company_name.ilike(like))
            | (Customer.email.ilike(like))
        )
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def customer_display_name(customer: Customer) -> str:
    return customer.display_name or customer.name or "Unknown"


def customer_to_dict(c: Customer) -> dict:
    return {
        "id": str(c.id),
        "userId": str(c.user_id) if c.user_id is not None else None,
        "name": c.name,
        "displayName": c.display_name,
        "email": c.email,
        "phone": c.phone,
        "address": c.address,
        "companyName": c.company_name,
        "billingAddress": c.billing_address,
        "shippingAddress": c.shipping_address,
        "gstin": c.gstin,
        "gstTreatment": c.gst_treatment,
        "placeOfSupply": c.place_of_supply,
        "customerType": c.customer_type,
        "createdAt": iso(c.created_at),
        "updatedAt": iso(c.updated_at),
    }
