"""Single-worker reschedule job queue."""

from app.queue.errors import JobQueueError, QueueFullError, QueueShuttingDownError
from app.queue.job_queue import JobQueue, get_job_queue, reset_job_queue

__all__ = [
    "JobQueue",
    "JobQueueError",
    "QueueFullError",
    "QueueShuttingDownError",
    "get_job_queue",
    "reset_job_queue",
]
