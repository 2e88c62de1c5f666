"""In-memory FIFO queue with a single worker slot for reschedule jobs."""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from app.automation.error_normalizer import normalize_error_message
from app.core.logging import get_logger
from app.models.job import ErrorKind, JobParams, JobResult, RunnerOutcome, new_request_id
from app.queue.errors import QueueFullError, QueueShuttingDownError

logger = get_logger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 50
DEFAULT_WAIT_TIMEOUT = 600.0  # 10 minutes

JobRunner = Callable[[JobParams], Awaitable[RunnerOutcome]]


class EntryState(str, Enum):
    WAITING = "waiting"
    DISPATCHED = "dispatched"
    SETTLED = "settled"


@dataclass
class QueueEntry:
    """A submitted job waiting for (or holding) the worker slot."""

    request_id: str
    params: JobParams
    future: asyncio.Future
    enqueued_at: float = field(default_factory=time.monotonic)
    enqueued_at_utc: datetime = field(default_factory=lambda: datetime.now(UTC))
    state: EntryState = EntryState.WAITING
    timed_out: bool = False
    deadline: Optional[asyncio.TimerHandle] = None

    def elapsed(self) -> float:
        return round(time.monotonic() - self.enqueued_at, 2)


@dataclass
class WorkerState:
    busy: bool = False
    started_at: Optional[datetime] = None
    current_request_id: Optional[str] = None


@dataclass
class QueueStats:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    rejected: int = 0
    cancelled: int = 0
    last_result: Optional[JobResult] = None


class JobQueue:
    """
    Serializes reschedule jobs onto one runner.

    Jobs run strictly one at a time in submission order. The busy flag is
    only read and written between awaits, so the event loop alone provides
    mutual exclusion.
    """

    def __init__(
        self,
        runner: JobRunner,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
        normalizer: Callable[[str], str] = normalize_error_message,
    ):
        """
        Initialize the queue.

        Args:
            runner: Async callable executing one job
            max_queue_size: Maximum number of waiting (not running) jobs
            wait_timeout: Seconds a job may wait before it is dropped
            normalizer: Maps raw runner failures to client-facing messages
        """
        self.runner = runner
        self.max_queue_size = max_queue_size
        self.wait_timeout = wait_timeout
        self.normalizer = normalizer

        self.worker = WorkerState()
        self.stats = QueueStats()
        self._waiting: deque[QueueEntry] = deque()
        self._current_task: Optional[asyncio.Task] = None
        self._shutting_down = False

    @property
    def is_busy(self) -> bool:
        return self.worker.busy

    @property
    def queue_length(self) -> int:
        return len(self._waiting)

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def pending_request_ids(self) -> list[str]:
        return [entry.request_id for entry in self._waiting]

    def submit(self, params: JobParams) -> asyncio.Future:
        """
        Enqueue a job.

        Must be called from the running event loop. Capacity and shutdown
        errors are raised here, synchronously; every other outcome arrives
        through the returned future, which always resolves to a JobResult
        and is never rejected.

        Raises:
            QueueShuttingDownError: If shutdown has begun
            QueueFullError: If the waiting list is at capacity
        """
        if self._shutting_down:
            raise QueueShuttingDownError("Server is shutting down, not accepting new jobs")

        if len(self._waiting) >= self.max_queue_size:
            self.stats.rejected += 1
            logger.warning(
                f"Queue full, rejecting job ({len(self._waiting)}/{self.max_queue_size} waiting)",
                queue_length=len(self._waiting),
            )
            raise QueueFullError(
                f"Queue is full ({self.max_queue_size} requests waiting). Try again later.",
                max_queue_size=self.max_queue_size,
            )

        loop = asyncio.get_running_loop()
        entry = QueueEntry(
            request_id=new_request_id(),
            params=params,
            future=loop.create_future(),
        )
        self._waiting.append(entry)
        entry.deadline = loop.call_later(self.wait_timeout, self._on_deadline, entry)

        position = len(self._waiting) + 1 if self.worker.busy else len(self._waiting)
        logger.info(
            f"Enqueued job {entry.request_id} at position {position}",
            request_id=entry.request_id,
            position=position,
            client_search=params.client_search,
            new_date=params.new_date,
            new_time=params.new_time,
        )

        self._maybe_drain_next()
        return entry.future

    def _maybe_drain_next(self) -> None:
        """Start the next waiting job if the worker is idle. Safe to call redundantly."""
        if self.worker.busy or not self._waiting:
            return

        while self._waiting and self._waiting[0].timed_out:
            self._waiting.popleft()

        if not self._waiting:
            return

        entry = self._waiting.popleft()
        self.worker.busy = True
        self.worker.started_at = datetime.now(UTC)
        self.worker.current_request_id = entry.request_id

        entry.state = EntryState.DISPATCHED
        if entry.deadline is not None:
            entry.deadline.cancel()
            entry.deadline = None

        self._current_task = asyncio.get_running_loop().create_task(self._execute(entry))

    async def _execute(self, entry: QueueEntry) -> None:
        logger.info(
            f"Starting job {entry.request_id} (waited {entry.elapsed():.2f}s)",
            request_id=entry.request_id,
            remaining=len(self._waiting),
        )
        run_started = time.monotonic()
        try:
            try:
                outcome = await self.runner(entry.params)
            except Exception as e:
                logger.error(f"Runner raised for job {entry.request_id}: {e}", exc_info=True)
                outcome = RunnerOutcome(success=False, message=str(e))

            result = self._build_result(entry, outcome)
            self._settle(entry, result)

            self.stats.processed += 1
            if result.success:
                self.stats.succeeded += 1
            else:
                self.stats.failed += 1

            logger.info(
                f"Job {entry.request_id} {'succeeded' if result.success else 'failed'} "
                f"in {time.monotonic() - run_started:.2f}s",
                request_id=entry.request_id,
                success=result.success,
                duration=result.duration,
                error=result.error,
            )
        finally:
            if not entry.future.done():
                # Only reachable if the task itself was cancelled mid-run
                self._settle(
                    entry,
                    JobResult.failure(
                        entry.request_id,
                        "Reschedule was interrupted before it finished",
                        ErrorKind.RUNNER_FAILURE,
                        duration=entry.elapsed(),
                    ),
                )
            self.worker.busy = False
            self.worker.started_at = None
            self.worker.current_request_id = None
            self._current_task = None
            self._maybe_drain_next()

    def _build_result(self, entry: QueueEntry, outcome: RunnerOutcome) -> JobResult:
        if outcome.success:
            return JobResult(
                request_id=entry.request_id,
                success=True,
                message=outcome.message,
                duration=entry.elapsed(),
            )
        return JobResult.failure(
            entry.request_id,
            self.normalizer(outcome.message),
            ErrorKind.RUNNER_FAILURE,
            duration=entry.elapsed(),
        )

    def _settle(self, entry: QueueEntry, result: JobResult) -> None:
        entry.state = EntryState.SETTLED
        if entry.deadline is not None:
            entry.deadline.cancel()
            entry.deadline = None
        if not entry.future.done():
            entry.future.set_result(result)
        self.stats.last_result = result

    def _on_deadline(self, entry: QueueEntry) -> None:
        # Jobs already handed to the runner finish normally.
        if entry.state is not EntryState.WAITING:
            return

        entry.timed_out = True
        try:
            self._waiting.remove(entry)
        except ValueError:
            pass

        self.stats.timed_out += 1
        logger.warning(
            f"Job {entry.request_id} timed out after {self.wait_timeout:g}s in queue",
            request_id=entry.request_id,
            queue_length=len(self._waiting),
        )
        self._settle(
            entry,
            JobResult.failure(
                entry.request_id,
                f"Request timed out waiting in queue after {self.wait_timeout:g} seconds",
                ErrorKind.QUEUE_TIMEOUT,
            ),
        )

    def reject_waiting(self) -> int:
        """
        Stop accepting jobs and resolve every waiting job as shut down.

        The in-flight job, if any, is left running. Idempotent.

        Returns:
            Number of waiting jobs that were resolved
        """
        self._shutting_down = True
        rejected = 0
        while self._waiting:
            entry = self._waiting.popleft()
            if entry.timed_out:
                continue
            self._settle(
                entry,
                JobResult.failure(
                    entry.request_id,
                    "Server is shutting down. Please resubmit the request later.",
                    ErrorKind.SERVER_SHUTTING_DOWN,
                ),
            )
            rejected += 1

        if rejected:
            self.stats.cancelled += rejected
            logger.warning(f"Resolved {rejected} queued job(s) as shut down", rejected=rejected)
        return rejected

    async def shutdown(self, grace_period: float) -> None:
        """
        Drain the queue for process exit.

        Waiting jobs are resolved immediately; the running job gets up to
        grace_period seconds to finish and is never cancelled here.
        """
        self.reject_waiting()

        task = self._current_task
        if task is None or task.done():
            return

        logger.info(
            f"Waiting up to {grace_period:g}s for job {self.worker.current_request_id} to finish",
            request_id=self.worker.current_request_id,
        )
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=grace_period)
            logger.info("In-flight job finished before shutdown")
        except asyncio.TimeoutError:
            logger.warning(
                f"In-flight job {self.worker.current_request_id} still running after grace period",
                request_id=self.worker.current_request_id,
            )

    def snapshot(self) -> dict[str, Any]:
        """Observability view of queue state."""
        last = self.stats.last_result
        return {
            "busy": self.worker.busy,
            "started_at": self.worker.started_at.isoformat() if self.worker.started_at else None,
            "current_request_id": self.worker.current_request_id,
            "queue_length": len(self._waiting),
            "max_queue_size": self.max_queue_size,
            "shutting_down": self._shutting_down,
            "stats": {
                "processed": self.stats.processed,
                "succeeded": self.stats.succeeded,
                "failed": self.stats.failed,
                "timed_out": self.stats.timed_out,
                "rejected": self.stats.rejected,
                "cancelled": self.stats.cancelled,
            },
            "last_result": last.model_dump(mode="json") if last else None,
        }


_queue_instance: JobQueue | None = None


def get_job_queue() -> JobQueue:
    """
    Get the process-wide job queue.

    Built on first use from settings with the browser automation runner.
    """
    global _queue_instance

    if _queue_instance is None:
        from app.automation.reschedule import run_reschedule_job
        from app.core.config import settings

        _queue_instance = JobQueue(
            runner=run_reschedule_job,
            max_queue_size=settings.max_queue_size,
            wait_timeout=settings.queue_timeout_seconds,
        )
        logger.info(
            "Job queue initialized",
            max_queue_size=settings.max_queue_size,
            wait_timeout=settings.queue_timeout_seconds,
        )
    return _queue_instance


def reset_job_queue() -> None:
    """Reset the queue instance (useful for testing)."""
    global _queue_instance
    _queue_instance = None
