"""ORM models for Takealot sync data."""

from takesync.db.models.execution_log import ExecutionLog
from takesync.db.models.integration import Integration
from takesync.db.models.offer import Offer
from takesync.db.models.sale import Sale
from takesync.db.models.sync_job import SyncJob

__all__ = [
    "ExecutionLog",
    "Integration",
    "Offer",
    "Sale",
    "SyncJob",
]
