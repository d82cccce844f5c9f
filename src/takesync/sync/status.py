"""Sync job status state machine."""

from enum import Enum

from takesync.utils.exceptions import InvalidTransitionError


class JobStatus(str, Enum):
    """Lifecycle states of a sync job."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.IN_PROGRESS)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in _TRANSITIONS[self]

    def transition_to(self, target: "JobStatus | str") -> "JobStatus":
        """Validate a status change.

        Args:
            target: Desired next status.

        Returns:
            The target status.

        Raises:
            InvalidTransitionError: If the change is not allowed.
        """
        target = JobStatus(target)
        if not self.can_transition_to(target):
            raise InvalidTransitionError(self.value, target.value)
        return target


_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset(
        {JobStatus.IN_PROGRESS, JobStatus.CANCELLED, JobStatus.FAILED}
    ),
    # in_progress is re-entered by every chunk
    JobStatus.IN_PROGRESS: frozenset(
        {JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}
