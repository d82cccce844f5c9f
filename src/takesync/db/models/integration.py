"""Integration ORM model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from takesync.db.base import Base, TimestampMixin


class Integration(Base, TimestampMixin):
    """A tenant's Takealot seller account and its sync preferences."""

    __tablename__ = "tks_integrations"

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    api_key: Mapped[str] = mapped_column(String(255), nullable=False)
    cron_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # strategy id -> schedule name, e.g. {"sls_100": "hourly"}
    sync_preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Integration(tenant_id='{self.tenant_id}', account='{self.account_name}')>"
