"""Sale repository."""

from datetime import datetime

from sqlalchemy import select

from takesync.db.models.sale import Sale
from takesync.db.repositories.base import SyncedRecordRepository


class SaleRepository(SyncedRecordRepository[Sale]):
    """Repository for Sale operations."""

    model = Sale
    natural_key = "order_id"

    def get_by_tenant(
        self,
        tenant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Sale]:
        """Get sales for a tenant, newest first.

        Args:
            tenant_id: Tenant identifier.
            start: Optional earliest order date.
            end: Optional latest order date.

        Returns:
            List of sales.
        """
        stmt = select(Sale).where(Sale.tenant_id == tenant_id)

        if start:
            stmt = stmt.where(Sale.order_date >= start)
        if end:
            stmt = stmt.where(Sale.order_date <= end)

        stmt = stmt.order_by(Sale.order_date.desc())
        return list(self.session.scalars(stmt).all())
