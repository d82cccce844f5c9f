"""Product offer ORM model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from takesync.db.base import Base, TimestampMixin


class Offer(Base, TimestampMixin):
    """A seller offer, keyed per tenant by its TSIN."""

    __tablename__ = "tks_offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tsin_id: Mapped[str] = mapped_column(String(50), nullable=False)

    # Display identifiers
    offer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(255), nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(100), nullable=True)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    offer_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Pricing and stock
    selling_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    rrp: Mapped[float | None] = mapped_column(Float, nullable=True)
    quantity_available: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stock_at_takealot_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_stock_on_way: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    date_created: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    first_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    raw: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (UniqueConstraint("tenant_id", "tsin_id", name="uq_offer_tenant_tsin"),)

    def __repr__(self) -> str:
        return f"<Offer(tenant='{self.tenant_id}', tsin_id={self.tsin_id}, sku='{self.sku}')>"
