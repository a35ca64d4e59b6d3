"""initial portal schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 09:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default="0")


def upgrade() -> None:
    """Create users/roles/audit, customers, catalog, quotes, invoices, receipts and item requests."""
    # Check if tables already exist (idempotent)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("display_name", sa.Text(), nullable=True),
            sa.Column("email", sa.String(320), nullable=True),
            sa.Column("phone", sa.Text(), nullable=False, server_default=""),
            sa.Column("address", sa.Text(), nullable=False, server_default=""),
            sa.Column("company_name", sa.Text(), nullable=False, server_default=""),
            sa.Column("billing_address", sa.JSON(), nullable=True),
            sa.Column("shipping_address", sa.JSON(), nullable=True),
            sa.Column("gstin", sa.String(32), nullable=False, server_default=""),
            sa.Column("gst_treatment", sa.String(64), nullable=True),
            sa.Column("place_of_supply", sa.String(8), nullable=False, server_default=""),
            sa.Column("customer_type", sa.String(32), nullable=False, server_default="business"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_customers_user_id", "customers", ["user_id"])
        op.create_index("idx_customers_email", "customers", ["email"])
        op.create_index("idx_customers_name", "customers", ["name"])

    if "items" not in existing_tables:
        op.create_table(
            "items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("type", sa.String(32), nullable=False, server_default="goods"),
            sa.Column("usage_unit", sa.String(32), nullable=False, server_default="pcs"),
            _money("rate"),
            _money("purchase_rate"),
            sa.Column("tax_preference", sa.String(32), nullable=False, server_default="taxable"),
            sa.Column("intra_state_tax", sa.String(32), nullable=False, server_default="GST18"),
            sa.Column("inter_state_tax", sa.String(32), nullable=False, server_default="IGST18"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("organization_id", sa.String(64), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_items_name", "items", ["name"])
        op.create_index("idx_items_is_active", "items", ["is_active"])

    if "quotes" not in existing_tables:
        op.create_table(
            "quotes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("quote_number", sa.String(32), nullable=True, unique=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
            sa.Column("customer_name", sa.Text(), nullable=False),
            sa.Column("billing_address", sa.JSON(), nullable=True),
            sa.Column("shipping_address", sa.JSON(), nullable=True),
            sa.Column("organization_id", sa.String(64), nullable=False, server_default="1"),
            sa.Column("date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("status", sa.String(32), nullable=False, server_default="Draft"),
            _money("sub_total"),
            _money("total"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_quotes_customer_id", "quotes", ["customer_id"])
        op.create_index("idx_quotes_status", "quotes", ["status"])

    if "quote_lines" not in existing_tables:
        op.create_table(
            "quote_lines",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("quote_id", sa.Integer(), sa.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("quantity", sa.Numeric(12, 3), nullable=False, server_default="1"),
            _money("rate"),
            _money("amount"),
            sa.Column("unit", sa.String(32), nullable=False, server_default="pcs"),
        )
        op.create_index("idx_quote_lines_quote_id", "quote_lines", ["quote_id", "position"])

    if "invoices" not in existing_tables:
        op.create_table(
            "invoices",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("invoice_number", sa.String(32), nullable=True, unique=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
            sa.Column("customer_name", sa.Text(), nullable=False),
            sa.Column("quote_id", sa.Integer(), sa.ForeignKey("quotes.id", ondelete="SET NULL"), nullable=True),
            sa.Column("organization_id", sa.String(64), nullable=False, server_default="1"),
            sa.Column("date", sa.Date(), nullable=False, server_default=sa.func.current_date()),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="Draft"),
            sa.Column("billing_address", sa.JSON(), nullable=True),
            sa.Column("shipping_address", sa.JSON(), nullable=True),
            sa.Column("place_of_supply", sa.String(8), nullable=False, server_default=""),
            _money("sub_total"),
            _money("cgst"),
            _money("sgst"),
            _money("igst"),
            _money("total"),
            _money("amount_paid"),
            _money("balance_due"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_invoices_customer_id", "invoices", ["customer_id"])
        op.create_index("idx_invoices_status", "invoices", ["status"])
        op.create_index("idx_invoices_due_date", "invoices", ["due_date"])

    if "invoice_lines" not in existing_tables:
        op.create_table(
            "invoice_lines",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("quantity", sa.Numeric(12, 3), nullable=False, server_default="1"),
            _money("rate"),
            _money("amount"),
            sa.Column("unit", sa.String(32), nullable=False, server_default="pcs"),
        )
        op.create_index("idx_invoice_lines_invoice_id", "invoice_lines", ["invoice_id", "position"])

    if "invoice_payments" not in existing_tables:
        op.create_table(
            "invoice_payments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
            sa.Column("date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("payment_mode", sa.String(32), nullable=False, server_default="online"),
            sa.Column("reference", sa.Text(), nullable=False, server_default=""),
            sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index("idx_invoice_payments_invoice_id", "invoice_payments", ["invoice_id"])

    if "invoice_activity_logs" not in existing_tables:
        op.create_table(
            "invoice_activity_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
            sa.Column("sequence", sa.Integer(), nullable=False),
            sa.Column("timestamp", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("action", sa.String(64), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("user", sa.Text(), nullable=False, server_default=""),
        )
        op.create_index("idx_invoice_activity_logs_invoice_id", "invoice_activity_logs", ["invoice_id", "sequence"])

    if "payments_received" not in existing_tables:
        op.create_table(
            "payments_received",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("payment_number", sa.String(32), nullable=True, unique=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
            sa.Column("customer_name", sa.Text(), nullable=False),
            sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True),
            sa.Column("invoice_number", sa.String(32), nullable=True),
            sa.Column("date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("payment_mode", sa.String(32), nullable=False, server_default="online"),
            sa.Column("reference", sa.Text(), nullable=False, server_default=""),
            sa.Column("notes", sa.Text(), nullable=False, server_default=""),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_payments_received_customer_id", "payments_received", ["customer_id"])
        op.create_index("idx_payments_received_invoice_id", "payments_received", ["invoice_id"])

    if "item_requests" not in existing_tables:
        op.create_table(
            "item_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
            sa.Column("customer_name", sa.Text(), nullable=False),
            sa.Column("customer_email", sa.String(320), nullable=True),
            sa.Column("company_name", sa.Text(), nullable=False, server_default=""),
            sa.Column("contact_number", sa.Text(), nullable=False, server_default=""),
            sa.Column("item_name", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("status", sa.String(32), nullable=False, server_default="Pending"),
            sa.Column("rejection_reason", sa.Text(), nullable=False, server_default=""),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id", ondelete="SET NULL"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_item_requests_customer_id", "item_requests", ["customer_id"])
        op.create_index("idx_item_requests_status", "item_requests", ["status"])


def downgrade() -> None:
    for table in (
        "item_requests",
        "payments_received",
        "invoice_activity_logs",
        "invoice_payments",
        "invoice_lines",
        "invoices",
        "quote_lines",
        "quotes",
        "items",
        "customers",
        "audit_events",
        "user_roles",
        "roles",
        "users",
    ):
        op.drop_table(table)
