"""Integration repository."""

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from takesync.db.models.integration import Integration
from takesync.db.repositories.base import BaseRepository


class IntegrationRepository(BaseRepository[Integration]):
    """Repository for Integration operations."""

    model = Integration

    def get_cron_enabled(self) -> list[Integration]:
        """Get integrations that take part in scheduled syncs."""
        stmt = (
            select(Integration)
            .where(Integration.cron_enabled.is_(True))
            .order_by(Integration.tenant_id)
        )
        return list(self.session.scalars(stmt).all())

    def get_for_schedule(self, schedule: str) -> list[tuple[Integration, list[str]]]:
        """Get integrations with the strategies they enabled for a schedule.

        Args:
            schedule: Schedule name, e.g. ``hourly``.

        Returns:
            (integration, strategy ids) pairs; integrations with no strategy
            on this schedule are left out.
        """
        matches = []
        for integration in self.get_cron_enabled():
            preferences = integration.sync_preferences or {}
            strategies = sorted(sid for sid, sched in preferences.items() if sched == schedule)
            if strategies:
                matches.append((integration, strategies))
        return matches

    def upsert(self, data: dict[str, Any]) -> Integration:
        """Insert or update an integration.

        Args:
            data: Dictionary with integration attributes; must include tenant_id.

        Returns:
            The upserted integration.
        """
        dialect = self.session.bind.dialect.name if self.session.bind else "sqlite"

        update_set = {k: v for k, v in data.items() if k != "tenant_id"}

        if dialect == "postgresql":
            stmt = pg_insert(Integration).values(**data)
            stmt = stmt.on_conflict_do_update(index_elements=["tenant_id"], set_=update_set)
        elif dialect in ("mysql", "mariadb"):
            stmt = mysql_insert(Integration).values(**data)
            stmt = stmt.on_duplicate_key_update(**update_set)
        else:
            stmt = sqlite_insert(Integration).values(**data)
            stmt = stmt.on_conflict_do_update(index_elements=["tenant_id"], set_=update_set)

        self.session.execute(stmt)
        self.session.flush()

        integration = self.get_by_id(data["tenant_id"])
        if integration is not None:
            self.session.refresh(integration)
        return integration  # type: ignore[return-value]

    def mark_synced(self, tenant_id: str, when: datetime) -> None:
        """Record the time of the last sync for a tenant."""
        self.session.execute(
            update(Integration).where(Integration.tenant_id == tenant_id).values(last_sync_at=when)
        )
