"""Health and queue statistics endpoint."""

import time

from fastapi import APIRouter, Depends, Request

from app.queue.job_queue import JobQueue, get_job_queue

router = APIRouter()


@router.get("/health")
async def health_check(request: Request, queue: JobQueue = Depends(get_job_queue)):
    """Report uptime, worker state, queue depth and counters."""
    snapshot = queue.snapshot()
    stats = snapshot["stats"]
    return {
        "status": "shutting_down" if snapshot["shutting_down"] else "ok",
        "uptime": round(time.monotonic() - request.app.state.started_at, 1),
        "busy": snapshot["busy"],
        "startedAt": snapshot["started_at"],
        "currentRequestId": snapshot["current_request_id"],
        "queueLength": snapshot["queue_length"],
        "maxQueueSize": snapshot["max_queue_size"],
        "stats": {
            "processed": stats["processed"],
            "succeeded": stats["succeeded"],
            "failed": stats["failed"],
            "timedOut": stats["timed_out"],
            "rejected": stats["rejected"],
            "cancelled": stats["cancelled"],
        },
        "lastResult": snapshot["last_result"],
    }
