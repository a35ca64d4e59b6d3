"""Tests for item requests and the catalog items they feed."""
import pytest
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.db import session_scope
from app.portal.models import Base, Role, User
from app.portal.modules.items.models import Item


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "0")
    monkeypatch.setenv("ORGANIZATION_ID", "org-7")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r_super = Role(key="super_admin", name="Super Administrator")
        r_customer = Role(key="customer", name="Customer")
        boss = User(email="boss@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        boss.roles.append(r_super)
        s.add_all([r_super, r_customer, boss])
        for email in ("asha@example.com", "vikram@example.com"):
            u = User(email=email, password_hash=generate_password_hash("pw"), is_active=True)
            u.roles.append(r_customer)
            s.add(u)
    return app


def _client(app, email, profile: dict | None = None):
    c = app.test_client()
    assert c.post("/auth/login", json={"email": email, "password": "pw"}).status_code == 200
    if profile is not None:
        assert c.post("/api/flow/profile", json=profile).status_code == 200
    return c


@pytest.fixture()
def asha(app):
    return _client(app, "asha@example.com", {"name": "Asha", "companyName": "Rao Traders", "phone": "98200"})


@pytest.fixture()
def staff(app):
    return _client(app, "boss@example.com")


def test_request_requires_profile(app):
    c = _client(app, "vikram@example.com")
    r = c.post("/api/flow/item-requests", json={"itemName": "Copper wire"})
    assert r.status_code == 400
    assert r.json["message"] == "Please complete your profile first"


def test_create_snapshots_customer(asha):
    r = asha.post("/api/flow/item-requests", json={"itemName": "Copper wire", "description": "2.5mm"})
    assert r.status_code == 200
    assert r.json["message"] == "Item request submitted successfully"
    data = r.json["data"]
    assert data["status"] == "Pending"
    assert data["quantity"] == 1
    assert data["customerName"] == "Asha"
    assert data["customerEmail"] == "asha@example.com"
    assert data["companyName"] == "Rao Traders"
    assert data["contactNumber"] == "98200"
    assert data["rejectionReason"] == ""
    assert data["itemId"] is None


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"itemName": "  "},
        {"itemName": "X", "quantity": "many"},
        {"itemName": "X", "quantity": -2},
        {"itemName": "X", "quantity": 2.5},
        {"itemName": "X", "quantity": "1e30"},
    ],
)
def test_create_validation(asha, payload):
    r = asha.post("/api/flow/item-requests", json=payload)
    assert r.status_code == 400


@pytest.mark.parametrize("quantity,expected", [(2.0, 2), ("3", 3), ("4.0", 4), (0, 1)])
def test_whole_number_quantities_accepted(asha, quantity, expected):
    r = asha.post("/api/flow/item-requests", json={"itemName": "Copper wire", "quantity": quantity})
    assert r.status_code == 200
    assert r.json["data"]["quantity"] == expected


def test_my_requests_only_mine(app, asha):
    asha.post("/api/flow/item-requests", json={"itemName": "Copper wire", "quantity": 3})
    vikram = _client(app, "vikram@example.com", {"name": "Vikram"})
    vikram.post("/api/flow/item-requests", json={"itemName": "Fuse box"})

    mine = asha.get("/api/flow/my-item-requests").json["data"]
    assert [(r["itemName"], r["quantity"]) for r in mine] == [("Copper wire", 3)]

    boss = _client(app, "boss@example.com")
    assert boss.get("/api/flow/my-item-requests").status_code == 403


def test_staff_list_filters_case_insensitively(asha, staff):
    rid = asha.post("/api/flow/item-requests", json={"itemName": "Copper wire"}).json["data"]["id"]
    asha.post("/api/flow/item-requests", json={"itemName": "Fuse box"})
    staff.patch(f"/api/flow/item-requests/{rid}/status", json={"status": "Rejected", "rejectionReason": "Not stocked"})

    assert len(staff.get("/api/flow/item-requests").json["data"]) == 2
    assert len(staff.get("/api/flow/item-requests?status=all").json["data"]) == 2
    rejected = staff.get("/api/flow/item-requests?status=rejected").json["data"]
    assert [(r["id"], r["rejectionReason"]) for r in rejected] == [(rid, "Not stocked")]

    # Exact match only, no LIKE wildcards.
    for pattern in ("P%25", "Pendin_", "%25"):
        assert staff.get(f"/api/flow/item-requests?status={pattern}").json["data"] == []

    # Customers cannot see the staff list.
    assert asha.get("/api/flow/item-requests").status_code == 403


def test_approval_creates_exactly_one_item(app, asha, staff):
    rid = asha.post("/api/flow/item-requests", json={"itemName": "Copper wire", "description": "2.5mm"}).json["data"]["id"]

    r = staff.patch(f"/api/flow/item-requests/{rid}/status", json={"status": "Approved"})
    assert r.status_code == 200
    assert r.json["message"] == "Request approved successfully"
    assert r.json["data"]["itemId"] is not None

    # Re-approving does not duplicate the catalog entry.
    staff.patch(f"/api/flow/item-requests/{rid}/status", json={"status": "Approved"})

    with session_scope(app) as s:
        items = s.query(Item).all()
        assert len(items) == 1
        item = items[0]
        assert item.name == "Copper wire"
        assert item.description == "2.5mm"
        assert item.type == "goods"
        assert item.usage_unit == "pcs"
        assert item.intra_state_tax == "GST18"
        assert item.inter_state_tax == "IGST18"
        assert item.organization_id == "org-7"

    catalog = asha.get("/api/flow/items").json["data"]
    assert [i["name"] for i in catalog] == ["Copper wire"]
    assert catalog[0]["rate"] == 0.0


def test_status_update_errors(asha, staff):
    rid = asha.post("/api/flow/item-requests", json={"itemName": "Copper wire"}).json["data"]["id"]
    assert staff.patch("/api/flow/item-requests/9999/status", json={"status": "Approved"}).status_code == 404
    r = staff.patch(f"/api/flow/item-requests/{rid}/status", json={"status": "Maybe"})
    assert r.status_code == 400
    assert asha.patch(f"/api/flow/item-requests/{rid}/status", json={"status": "Approved"}).status_code == 403


def test_staff_items_include_inactive(app, staff):
    with session_scope(app) as s:
        s.add_all([Item(name="Live"), Item(name="Retired", is_active=False)])

    assert [i["name"] for i in staff.get("/api/admin/items").json["data"]] == ["Live"]
    assert [i["name"] for i in staff.get("/api/admin/items?include_inactive=1").json["data"]] == ["Live", "Retired"]
