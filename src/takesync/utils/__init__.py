"""Utility modules for takesync."""

from takesync.utils.exceptions import (
    APIError,
    ConcurrentModificationError,
    ConfigurationError,
    DatabaseError,
    IntegrationNotFoundError,
    InvalidTransitionError,
    JobNotFoundError,
    RateLimitError,
    SyncError,
    TakesyncError,
)
from takesync.utils.retry import retry_with_backoff

__all__ = [
    "APIError",
    "ConcurrentModificationError",
    "ConfigurationError",
    "DatabaseError",
    "IntegrationNotFoundError",
    "InvalidTransitionError",
    "JobNotFoundError",
    "RateLimitError",
    "SyncError",
    "TakesyncError",
    "retry_with_backoff",
]
