"""Tests for invoicing and payment reconciliation."""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.db import session_scope
from app.portal.models import Base, Role, User
from app.portal.modules.customer_profiles.models import Customer
from app.portal.modules.invoices.models import Invoice


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "0")
    monkeypatch.setenv("ORGANIZATION_STATE_CODE", "27")
    monkeypatch.setenv("GST_RATE", "18")
    monkeypatch.setenv("PAYMENT_TERMS_DAYS", "30")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r_admin = Role(key="admin", name="Administrator")
        r_customer = Role(key="customer", name="Customer")
        admin = User(email="admin@example.com", name="Ops", password_hash=generate_password_hash("pw"), is_active=True)
        admin.roles.append(r_admin)
        s.add_all([r_admin, r_customer, admin])
        for email in ("asha@example.com", "vikram@example.com", "nobody@example.com"):
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
def staff(app):
    return _client(app, "admin@example.com")


@pytest.fixture()
def asha(app):
    return _client(app, "asha@example.com", {"name": "Asha", "placeOfSupply": "27"})


def _approved_quote(customer_client, items=None) -> str:
    items = items or [{"name": "Panel", "quantity": 2, "rate": 500}]
    qid = customer_client.post("/api/flow/request", json={"items": items}).json["data"]["id"]
    assert customer_client.post(f"/api/flow/quotes/{qid}/approve").status_code == 200
    return qid


def _invoice(staff, customer_client, items=None) -> dict:
    qid = _approved_quote(customer_client, items)
    r = staff.post(f"/api/admin/quotes/{qid}/invoice")
    assert r.status_code == 201
    return r.json["data"]


# ---------- invoice creation ----------
def test_invoice_from_approved_quote_intra_state(staff, asha):
    inv = _invoice(staff, asha)

    assert inv["invoiceNumber"].startswith("INV-")
    assert inv["status"] == "Draft"
    assert inv["customerName"] == "Asha"
    assert inv["subTotal"] == 1000.0
    assert (inv["cgst"], inv["sgst"], inv["igst"]) == (90.0, 90.0, 0.0)
    assert inv["total"] == 1180.0
    assert inv["amount"] == 1180.0
    assert inv["amountPaid"] == 0.0
    assert inv["balanceDue"] == 1180.0
    assert inv["dueDate"] == (date.fromisoformat(inv["date"]) + timedelta(days=30)).isoformat()
    assert [(a["id"], a["action"], a["user"]) for a in inv["activityLogs"]] == [("1", "invoice_created", "Ops")]
    assert [i["name"] for i in inv["items"]] == ["Panel"]

    quotes = asha.get("/api/flow/quotes").json["data"]
    assert quotes[0]["status"] == "Invoiced"


def test_invoice_inter_state_uses_igst(app, staff):
    vikram = _client(app, "vikram@example.com", {"name": "Vikram", "placeOfSupply": "29"})
    inv = _invoice(staff, vikram)
    assert (inv["cgst"], inv["sgst"], inv["igst"]) == (0.0, 0.0, 180.0)
    assert inv["total"] == 1180.0


def test_invoice_requires_approved_quote(staff, asha):
    qid = asha.post("/api/flow/request", json={"items": [{"name": "Panel"}]}).json["data"]["id"]
    r = staff.post(f"/api/admin/quotes/{qid}/invoice")
    assert r.status_code == 409
    assert r.json["message"] == "Only approved quotes can be invoiced"
    assert staff.post("/api/admin/quotes/9999/invoice").status_code == 404


def test_customers_cannot_create_invoices(asha):
    qid = _approved_quote(asha)
    assert asha.post(f"/api/admin/quotes/{qid}/invoice").status_code == 403


# ---------- reconciliation ----------
def test_partial_then_balance_payment(staff, asha):
    inv = _invoice(staff, asha)

    r = asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": 500})
    assert r.status_code == 200
    assert r.json["message"] == "Payment successful"
    data = r.json["data"]
    assert data["status"] == "Partially Paid"
    assert data["amountPaid"] == 500.0
    assert data["balanceDue"] == 680.0
    assert len(data["payments"]) == 1
    assert data["payments"][0]["paymentMode"] == "online"
    assert data["payments"][0]["notes"] == "Payment recorded by customer"
    last = data["activityLogs"][-1]
    assert (last["id"], last["action"], last["user"]) == ("2", "payment_recorded", "Asha")
    assert last["description"] == "Payment of ₹500 recorded"

    # No amount pays the remaining balance.
    r = asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={})
    data = r.json["data"]
    assert data["status"] == "Paid"
    assert data["amountPaid"] == 1180.0
    assert data["balanceDue"] == 0.0
    assert [a["id"] for a in data["activityLogs"]] == ["1", "2", "3"]
    assert data["activityLogs"][-1]["description"] == "Payment of ₹680 recorded"


def test_full_payment_without_amount(staff, asha):
    inv = _invoice(staff, asha)
    data = asha.post(f"/api/flow/invoices/{inv['id']}/pay").json["data"]
    assert data["status"] == "Paid"
    assert data["amountPaid"] == 1180.0
    assert data["balanceDue"] == 0.0


def test_overpayment_clamps_balance(staff, asha):
    inv = _invoice(staff, asha)
    data = asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": "150000"}).json["data"]
    assert data["status"] == "Paid"
    assert data["amountPaid"] == 150000.0
    assert data["balanceDue"] == 0.0
    assert data["activityLogs"][-1]["description"] == "Payment of ₹1,50,000 recorded"


def test_paid_invoice_rejects_more_payments(staff, asha):
    inv = _invoice(staff, asha)
    asha.post(f"/api/flow/invoices/{inv['id']}/pay")
    r = asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": 10})
    assert r.status_code == 409
    assert r.json["message"] == "Invoice is already paid"


@pytest.mark.parametrize("amount", ["abc", -5, "1e30", "10000000000"])
def test_invalid_amounts_rejected(staff, asha, amount):
    inv = _invoice(staff, asha)
    r = asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": amount})
    assert r.status_code == 400
    assert r.json["success"] is False

    # Nothing was applied.
    assert asha.get(f"/api/flow/invoices/{inv['id']}").json["data"]["amountPaid"] == 0.0


def test_payment_writes_receipt(staff, asha):
    inv = _invoice(staff, asha)
    asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": 200})

    receipts = asha.get("/api/flow/receipts").json["data"]
    assert len(receipts) == 1
    assert receipts[0]["paymentNumber"].startswith("PR-")
    assert receipts[0]["invoiceNumber"] == inv["invoiceNumber"]
    assert receipts[0]["amount"] == 200.0

    r = staff.get(f"/api/admin/payments-received?customer_id={inv['customerId']}")
    assert [x["id"] for x in r.json["data"]] == [receipts[0]["id"]]
    assert staff.get("/api/admin/payments-received?customer_id=abc").status_code == 400


# ---------- ownership ----------
def test_invoice_ownership(app, staff, asha):
    inv = _invoice(staff, asha)

    assert [i["id"] for i in asha.get("/api/flow/invoices").json["data"]] == [inv["id"]]
    assert asha.get(f"/api/flow/invoices/{inv['id']}").status_code == 200
    assert asha.get("/api/flow/invoices/9999").status_code == 404

    vikram = _client(app, "vikram@example.com", {"name": "Vikram"})
    assert vikram.get("/api/flow/invoices").json["data"] == []
    assert vikram.get(f"/api/flow/invoices/{inv['id']}").status_code == 403
    r = vikram.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": 1})
    assert r.status_code == 403
    assert r.json["message"] == "Unauthorized"

    no_profile = _client(app, "nobody@example.com")
    assert no_profile.get(f"/api/flow/invoices/{inv['id']}").status_code == 403
    assert no_profile.get("/api/flow/invoices").json["data"] == []

    assert app.test_client().get(f"/api/flow/invoices/{inv['id']}").status_code == 401


# ---------- staff lifecycle ----------
def test_send_and_void(staff, asha):
    inv = _invoice(staff, asha)

    r = staff.patch(f"/api/admin/invoices/{inv['id']}/send")
    assert r.status_code == 200
    assert r.json["data"]["status"] == "Sent"
    assert r.json["data"]["activityLogs"][-1]["action"] == "invoice_sent"

    r = staff.post(f"/api/admin/invoices/{inv['id']}/void", json={"reason": "Duplicate"})
    assert r.status_code == 200
    data = r.json["data"]
    assert data["status"] == "Void"
    assert data["activityLogs"][-1]["description"] == "Invoice voided: Duplicate"

    r = asha.post(f"/api/flow/invoices/{inv['id']}/pay")
    assert r.status_code == 409
    assert r.json["message"] == "Cannot pay a void invoice"


def test_void_refused_after_payment(staff, asha):
    inv = _invoice(staff, asha)
    asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": 100})
    r = staff.post(f"/api/admin/invoices/{inv['id']}/void")
    assert r.status_code == 409


def test_overdue_is_derived(app, staff, asha):
    inv = _invoice(staff, asha)
    staff.patch(f"/api/admin/invoices/{inv['id']}/send")

    with session_scope(app) as s:
        row = s.get(Invoice, int(inv["id"]))
        row.due_date = date.today() - timedelta(days=1)

    assert asha.get(f"/api/flow/invoices/{inv['id']}").json["data"]["status"] == "Overdue"
    assert [i["id"] for i in staff.get("/api/admin/invoices?status=Overdue").json["data"]] == [inv["id"]]

    with session_scope(app) as s:
        assert s.get(Invoice, int(inv["id"])).status == "Sent"

    # Paying it off clears the overdue state.
    data = asha.post(f"/api/flow/invoices/{inv['id']}/pay").json["data"]
    assert data["status"] == "Paid"
    assert staff.get("/api/admin/invoices?status=Overdue").json["data"] == []


def test_payment_cannot_push_total_paid_out_of_range(app, staff, asha):
    inv = _invoice(staff, asha)
    asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": 100})
    with session_scope(app) as s:
        row = s.get(Invoice, int(inv["id"]))
        row.status = "Partially Paid"
        row.amount_paid = Decimal("9999999999.00")

    r = asha.post(f"/api/flow/invoices/{inv['id']}/pay", json={"amount": 5})
    assert r.status_code == 400
    assert r.json["message"] == "Total paid on this invoice is too large"


def test_staff_status_filter_ignores_case(staff, asha):
    inv = _invoice(staff, asha)
    asha.post(f"/api/flow/invoices/{inv['id']}/pay")

    for status in ("Paid", "paid", "PAID"):
        assert [i["id"] for i in staff.get(f"/api/admin/invoices?status={status}").json["data"]] == [inv["id"]]
    assert staff.get("/api/admin/invoices?status=draft").json["data"] == []
    assert staff.get("/api/admin/invoices?status=overdue").json["data"] == []


def test_user_with_two_customer_records_sees_and_pays_both(app, staff, asha):
    first = _invoice(staff, asha)
    second = _invoice(staff, asha)

    # Move the second invoice onto another customer record linked to the same login.
    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "asha@example.com").one()
        branch = Customer(name="Asha (Pune branch)", email="asha@example.com", user_id=user.id)
        s.add(branch)
        s.flush()
        s.get(Invoice, int(second["id"])).customer_id = branch.id
        branch_id = str(branch.id)

    ids = {i["id"] for i in asha.get("/api/flow/invoices").json["data"]}
    assert ids == {first["id"], second["id"]}

    r = asha.get(f"/api/flow/invoices/{second['id']}")
    assert r.status_code == 200
    assert r.json["data"]["customerId"] == branch_id

    r = asha.post(f"/api/flow/invoices/{second['id']}/pay")
    assert r.status_code == 200
    assert r.json["data"]["status"] == "Paid"
    assert r.json["data"]["activityLogs"][-1]["user"] == "Asha (Pune branch)"

    receipts = asha.get("/api/flow/receipts").json["data"]
    assert [x["customerId"] for x in receipts] == [branch_id]


def test_send_payment_link(staff, asha):
    inv = _invoice(staff, asha)

    r = staff.post(f"/api/admin/invoices/{inv['id']}/send-payment-link")
    assert r.status_code == 200
    assert r.json["message"] == "Payment link sent"
    last = r.json["data"]["activityLogs"][-1]
    assert (last["action"], last["user"]) == ("payment_link_sent", "Ops")
    assert last["description"] == "Payment link sent to asha@example.com"

    assert asha.post(f"/api/admin/invoices/{inv['id']}/send-payment-link").status_code == 403
    assert staff.post("/api/admin/invoices/9999/send-payment-link").status_code == 404

    asha.post(f"/api/flow/invoices/{inv['id']}/pay")
    assert staff.post(f"/api/admin/invoices/{inv['id']}/send-payment-link").status_code == 409
