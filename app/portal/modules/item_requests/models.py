from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.portal.models import Base
from app.portal.modules.customer_profiles.models import Customer
from app.portal.modules.items.models import Item


class ItemRequest(Base):
    __tablename__ = "item_requests"
    __table_args__ = (
        Index("idx_item_requests_customer_id", "customer_id"),
        Index("idx_item_requests_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    # Contact snapshot taken when the request is made.
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    company_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contact_number: Mapped[str] = mapped_column(Text, nullable=False, default="")

    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Pending")  # Pending, Approved, Rejected
    rejection_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Catalog item created on approval.
    item_id: Mapped[int | None] = mapped_column(ForeignKey("items.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer: Mapped[Customer] = relationship("Customer", lazy="selectin")
    item: Mapped[Item | None] = relationship("Item", lazy="selectin")
