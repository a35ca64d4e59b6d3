from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.portal.models import Base, User


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_user_id", "user_id"),
        Index("idx_customers_email", "email"),
        Index("idx_customers_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # A customer record may exist before its portal user does (created by staff);
    # the link is made on first profile save.
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str] = mapped_column(Text, nullable=False, default="")
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    company_name: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # {"street", "city", "state", "country", "pincode"}
    billing_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    shipping_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    gstin: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    gst_treatment: Mapped[str | None] = mapped_column(String(64), nullable=True)
    place_of_supply: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    customer_type: Mapped[str] = mapped_column(String(32), nullable=False, default="business")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped[User | None] = relationship("User", foreign_keys=[user_id], lazy="selectin")
