"""Tests for customer matching and the profile endpoints."""
import pytest
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.db import session_scope
from app.portal.models import Base, Role, User
from app.portal.modules.customer_profiles.models import Customer
from app.portal.modules.customer_profiles.service import find_all_customers, find_customer


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "0")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r_admin = Role(key="admin", name="Administrator")
        r_customer = Role(key="customer", name="Customer")
        admin = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        admin.roles.append(r_admin)
        cust = User(email="asha@example.com", name="Asha Rao", password_hash=generate_password_hash("pw"), is_active=True)
        cust.roles.append(r_customer)
        s.add_all([r_admin, r_customer, admin, cust])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email):
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200


def _user(s, email) -> User:
    return s.query(User).filter(User.email == email).one()


# ---------- matching ----------
def test_find_customer_none_without_user(app):
    with session_scope(app) as s:
        assert find_customer(s, None) is None
        assert find_all_customers(s, None) == []


def test_find_customer_prefers_user_id_over_email(app):
    with session_scope(app) as s:
        u = _user(s, "asha@example.com")
        by_email = Customer(name="Email Match", email="asha@example.com")
        by_id = Customer(name="Linked", email="other@example.com", user_id=u.id)
        s.add_all([by_email, by_id])
        s.flush()

        assert find_customer(s, u).name == "Linked"
        assert [c.name for c in find_all_customers(s, u)] == ["Linked"]


def test_find_customer_falls_back_to_email_case_insensitive(app):
    with session_scope(app) as s:
        u = _user(s, "asha@example.com")
        s.add_all([
            Customer(name="First", email="ASHA@example.com"),
            Customer(name="Second", email="asha@example.com"),
            Customer(name="Unrelated", email="nobody@example.com"),
        ])
        s.flush()

        assert find_customer(s, u).name == "First"
        assert [c.name for c in find_all_customers(s, u)] == ["First", "Second"]


def test_find_all_customers_returns_every_linked_record(app):
    with session_scope(app) as s:
        u = _user(s, "asha@example.com")
        s.add_all([
            Customer(name="Branch A", user_id=u.id),
            Customer(name="Branch B", user_id=u.id),
            Customer(name="Email only", email="asha@example.com"),
        ])
        s.flush()

        assert [c.name for c in find_all_customers(s, u)] == ["Branch A", "Branch B"]


# ---------- endpoints ----------
def test_profile_get_404_before_save(client):
    _login(client, "asha@example.com")
    r = client.get("/api/flow/profile")
    assert r.status_code == 404
    assert r.json["message"] == "Profile not found"


def test_profile_save_applies_defaults(client):
    _login(client, "asha@example.com")
    r = client.post("/api/flow/profile", json={"phone": "98200 00000"})
    assert r.status_code == 200
    assert r.json["message"] == "Profile updated successfully"

    data = r.json["data"]
    assert data["name"] == "Asha Rao"
    assert data["email"] == "asha@example.com"
    assert data["customerType"] == "business"
    assert data["address"] == ""
    assert data["billingAddress"] == {"street": "", "city": "", "state": "", "country": "India", "pincode": ""}
    assert data["shippingAddress"] == data["billingAddress"]


def test_profile_address_derived_from_billing(client):
    _login(client, "asha@example.com")
    billing = {"street": "12 MG Road", "city": "Pune", "state": "Maharashtra", "country": "India", "pincode": "411001"}
    r = client.post("/api/flow/profile", json={"name": "Asha", "billingAddress": billing, "placeOfSupply": "27"})
    assert r.status_code == 200
    data = r.json["data"]
    assert data["address"] == "12 MG Road, Pune"
    assert data["shippingAddress"] == billing
    assert data["placeOfSupply"] == "27"


def test_profile_update_keeps_same_record(client):
    _login(client, "asha@example.com")
    first = client.post("/api/flow/profile", json={"name": "Asha"}).json["data"]
    second = client.post("/api/flow/profile", json={"name": "Asha R", "companyName": "Rao Traders"}).json["data"]
    assert first["id"] == second["id"]
    assert second["companyName"] == "Rao Traders"

    r = client.get("/api/flow/profile")
    assert r.json["data"]["name"] == "Asha R"


def test_profile_save_links_staff_created_record_by_email(app, client):
    with session_scope(app) as s:
        c = Customer(name="Staff Entered", email="asha@example.com")
        s.add(c)
        s.flush()
        staff_id = c.id

    _login(client, "asha@example.com")
    data = client.post("/api/flow/profile", json={"name": "Asha"}).json["data"]
    assert data["id"] == str(staff_id)
    assert data["userId"] is not None


def test_profile_validation(client):
    _login(client, "asha@example.com")
    r = client.post("/api/flow/profile", json={"placeOfSupply": "99"})
    assert r.status_code == 400
    assert r.json["success"] is False

    r = client.post("/api/flow/profile", json={"customerType": "alien"})
    assert r.status_code == 400
    assert "customer type" in r.json["message"]


def test_staff_customer_list_and_detail(client):
    _login(client, "asha@example.com")
    cid = client.post("/api/flow/profile", json={"name": "Asha", "companyName": "Rao Traders"}).json["data"]["id"]
    client.post("/auth/logout")

    _login(client, "admin@example.com")
    r = client.get("/api/admin/customers?q=traders")
    assert r.status_code == 200
    assert [c["id"] for c in r.json["data"]] == [cid]

    assert client.get("/api/admin/customers?q=zzz").json["data"] == []
    assert client.get(f"/api/admin/customers/{cid}").json["data"]["name"] == "Asha"
    assert client.get("/api/admin/customers/9999").status_code == 404
