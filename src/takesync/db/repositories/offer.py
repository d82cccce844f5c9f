"""Offer repository."""

from sqlalchemy import select

from takesync.db.models.offer import Offer
from takesync.db.repositories.base import SyncedRecordRepository


class OfferRepository(SyncedRecordRepository[Offer]):
    """Repository for Offer operations."""

    model = Offer
    natural_key = "tsin_id"

    def get_by_tenant(self, tenant_id: str, limit: int | None = None) -> list[Offer]:
        """Get offers for a tenant ordered by title.

        Args:
            tenant_id: Tenant identifier.
            limit: Optional maximum number of offers.

        Returns:
            List of offers.
        """
        stmt = select(Offer).where(Offer.tenant_id == tenant_id).order_by(Offer.title)
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())
