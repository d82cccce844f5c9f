"""Sale ORM model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from takesync.db.base import Base, TimestampMixin


class Sale(Base, TimestampMixin):
    """A marketplace sale, keyed per tenant by its order id."""

    __tablename__ = "tks_sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    order_id: Mapped[str] = mapped_column(String(50), nullable=False)

    order_item_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    order_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    sale_status: Mapped[str | None] = mapped_column(String(100), nullable=True)
    offer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tsin: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    dc: Mapped[str | None] = mapped_column(String(20), nullable=True)
    customer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shipment_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Amounts
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    selling_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    success_fee: Mapped[float | None] = mapped_column(Float, nullable=True)
    fulfillment_fee: Mapped[float | None] = mapped_column(Float, nullable=True)
    courier_collection_fee: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_fee: Mapped[float | None] = mapped_column(Float, nullable=True)

    first_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    raw: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (UniqueConstraint("tenant_id", "order_id", name="uq_sale_tenant_order"),)

    def __repr__(self) -> str:
        return f"<Sale(tenant='{self.tenant_id}', order_id={self.order_id}, date={self.order_date})>"
