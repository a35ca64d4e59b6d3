import pytest
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.db import session_scope
from app.portal.models import AuditEvent, Base, Role, User


def _make_app(tmp_path, monkeypatch, *, csrf: bool = False, create_tables: bool = True):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "1" if csrf else "0")

    app = create_app()
    if not create_tables:
        return app

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r_admin = Role(key="admin", name="Administrator")
        r_customer = Role(key="customer", name="Customer")
        admin = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        admin.roles.append(r_admin)
        cust = User(email="cust@example.com", name="Asha", password_hash=generate_password_hash("pw"), is_active=True)
        cust.roles.append(r_customer)
        s.add_all([r_admin, r_customer, admin, cust])
    return app


@pytest.fixture()
def app(tmp_path, monkeypatch):
    return _make_app(tmp_path, monkeypatch)


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email):
    return client.post("/auth/login", json={"email": email, "password": "pw"})


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["schema_ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_anonymous_gets_401_envelope(client):
    r = client.get("/api/flow/quotes")
    assert r.status_code == 401
    assert r.json["success"] is False
    assert r.json["message"] == "Authentication required"
    assert "request_id" in r.json


def test_login_me_logout(client):
    r = _login(client, "cust@example.com")
    assert r.status_code == 200
    assert r.json["success"] is True
    assert r.json["data"]["roles"] == ["customer"]

    r = client.get("/auth/me")
    assert r.status_code == 200
    assert r.json["data"]["email"] == "cust@example.com"

    r = client.post("/auth/logout")
    assert r.status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_login_bad_password_is_audited(app, client):
    r = client.post("/auth/login", json={"email": "cust@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid credentials"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").one()
        assert ev.entity_id == "cust@example.com"

    # A successful login resets the attempt counter for the next tests.
    assert _login(client, "cust@example.com").status_code == 200


def test_register_creates_customer_user(client):
    r = client.post("/auth/register", json={"email": "New@Example.com", "name": "Neha", "password": "longenough"})
    assert r.status_code == 201
    assert r.json["data"]["email"] == "new@example.com"
    assert r.json["data"]["roles"] == ["customer"]

    # Registration logs the user in.
    assert client.get("/auth/me").status_code == 200

    r = client.post("/auth/register", json={"email": "new@example.com", "password": "longenough"})
    assert r.status_code == 409


def test_register_rejects_short_password(client):
    r = client.post("/auth/register", json={"email": "x@example.com", "password": "short"})
    assert r.status_code == 400
    assert "at least" in r.json["message"]


def test_role_gating(client):
    _login(client, "cust@example.com")
    r = client.get("/api/admin/quotes")
    assert r.status_code == 403
    assert r.json["success"] is False
    assert r.json["message"] == "You do not have access to this resource"

    client.post("/auth/logout")
    _login(client, "admin@example.com")
    assert client.get("/api/admin/quotes").status_code == 200
    # Staff are not customers.
    assert client.get("/api/flow/quotes").status_code == 403


def test_unknown_api_route_is_json_404(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json["success"] is False


def test_csrf_enforced_when_enabled(tmp_path, monkeypatch):
    app = _make_app(tmp_path, monkeypatch, csrf=True)
    client = app.test_client()
    assert _login(client, "cust@example.com").status_code == 200

    r = client.post("/api/flow/profile", json={"name": "Asha"})
    assert r.status_code == 400
    assert r.json["message"] == "CSRF token missing or invalid."

    token = client.get("/auth/csrf").json["data"]["csrfToken"]
    r = client.post("/api/flow/profile", json={"name": "Asha"}, headers={"X-CSRF-Token": token})
    assert r.status_code == 200


def test_schema_guard_returns_503_until_tables_exist(tmp_path, monkeypatch):
    app = _make_app(tmp_path, monkeypatch, create_tables=False)
    client = app.test_client()

    r = client.get("/api/flow/items")
    assert r.status_code == 503
    assert r.json["success"] is False
    assert "users (table)" in r.json["details"]
    assert client.get("/health").json["schema_ok"] is False

    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    assert client.get("/api/flow/items").status_code == 401
    assert client.get("/health").json["schema_ok"] is True
