from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.portal.models import Base


class Item(Base):
    """Catalog item (goods or services) that quotes and invoices are priced from."""

    __tablename__ = "items"
    __table_args__ = (
        Index("idx_items_name", "name"),
        Index("idx_items_is_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="goods")  # goods, service
    usage_unit: Mapped[str] = mapped_column(String(32), nullable=False, default="pcs")

    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    purchase_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    tax_preference: Mapped[str] = mapped_column(String(32), nullable=False, default="taxable")
    intra_state_tax: Mapped[str] = mapped_column(String(32), nullable=False, default="GST18")
    inter_state_tax: Mapped[str] = mapped_column(String(32), nullable=False, default="IGST18")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, default="1")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
