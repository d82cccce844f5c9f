"""Custom exception hierarchy for takesync."""


class TakesyncError(Exception):
    """Base exception for all takesync errors."""

    pass


class ConfigurationError(TakesyncError):
    """Error in application or integration configuration."""

    pass


class APIError(TakesyncError):
    """Error communicating with the Takealot Seller API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize API error.

        Args:
            message: Error message.
            status_code: HTTP status code, or None for network failures.
        """
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether repeating the same request may succeed.

        Network failures, rate limiting and server errors are transient;
        any other 4xx response is permanent.
        """
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class RateLimitError(APIError):
    """API rate limit exceeded (HTTP 429)."""

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class DatabaseError(TakesyncError):
    """Error with database operations."""

    pass


class SyncError(TakesyncError):
    """Error during data synchronization."""

    pass


class JobNotFoundError(SyncError):
    """No sync job exists with the requested id."""

    pass


class IntegrationNotFoundError(SyncError):
    """No integration is configured for the requested tenant."""

    pass


class InvalidTransitionError(SyncError):
    """A sync job status change that the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move sync job from {current} to {target}")
        self.current = current
        self.target = target


class ConcurrentModificationError(SyncError):
    """Another writer changed the sync job since it was read."""

    pass
