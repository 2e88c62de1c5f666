"""Reschedule endpoint."""

import asyncio
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import get_logger
from app.models.job import ErrorKind
from app.models.schemas import RescheduleRequest, RescheduleResponse
from app.queue.errors import QueueFullError, QueueShuttingDownError
from app.queue.job_queue import JobQueue, get_job_queue

logger = get_logger(__name__)
router = APIRouter()


async def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Check the X-API-Key header when an API key is configured."""
    if not settings.api_key:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key, settings.api_key):
        logger.warning("Rejected request with missing or invalid API key")
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


@router.post("/reschedule", dependencies=[Depends(require_api_key)])
async def reschedule(
    body: RescheduleRequest,
    queue: JobQueue = Depends(get_job_queue),
):
    """Queue a reschedule and wait for its outcome."""
    try:
        future = queue.submit(body.to_job_params())
    except QueueFullError as e:
        return JSONResponse(
            status_code=429,
            content={"success": False, "error": str(e), "errorKind": ErrorKind.QUEUE_FULL.value},
        )
    except QueueShuttingDownError as e:
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": str(e),
                "errorKind": ErrorKind.SERVER_SHUTTING_DOWN.value,
            },
        )

    # A disconnecting client must not cancel the queued job's future
    result = await asyncio.shield(future)

    response = RescheduleResponse.from_result(result)
    return JSONResponse(
        status_code=200 if result.success else 500,
        content=response.to_content(),
    )
