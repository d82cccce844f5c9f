"""Repository classes for database operations."""

from takesync.db.repositories.execution_log import ExecutionLogRepository
from takesync.db.repositories.integration import IntegrationRepository
from takesync.db.repositories.offer import OfferRepository
from takesync.db.repositories.sale import SaleRepository
from takesync.db.repositories.sync_job import SyncJobRepository

__all__ = [
    "ExecutionLogRepository",
    "IntegrationRepository",
    "OfferRepository",
    "SaleRepository",
    "SyncJobRepository",
]
