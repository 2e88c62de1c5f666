"""Custom exceptions for the reschedule queue."""


class JobQueueError(Exception):
    """Base exception for queue admission errors."""

    pass


class QueueFullError(JobQueueError):
    """Raised when the waiting list is at capacity."""

    def __init__(self, message: str, max_queue_size: int):
        super().__init__(message)
        self.max_queue_size = max_queue_size


class QueueShuttingDownError(JobQueueError):
    """Raised when a job is submitted after shutdown has begun."""

    pass
