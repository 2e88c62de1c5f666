"""Job data models for the reschedule queue."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Client-facing error taxonomy."""

    VALIDATION_ERROR = "ValidationError"
    UNAUTHORIZED = "Unauthorized"
    QUEUE_FULL = "QueueFull"
    QUEUE_TIMEOUT = "QueueTimeout"
    RUNNER_FAILURE = "RunnerFailure"
    SERVER_SHUTTING_DOWN = "ServerShuttingDown"


class JobParams(BaseModel):
    """Parameters for a single reschedule run."""

    client_search: str
    new_date: str  # MM/DD/YYYY
    new_time: str  # H:MM AM/PM
    current_appointment_date: Optional[str] = None  # MM/DD/YYYY, picks among several upcoming

    class Config:
        json_schema_extra = {
            "example": {
                "client_search": "5551234567",
                "new_date": "03/05/2026",
                "new_time": "3:00 PM",
                "current_appointment_date": "03/02/2026",
            }
        }


class RunnerOutcome(BaseModel):
    """What the automation runner reports for one job."""

    success: bool
    message: str


class JobResult(BaseModel):
    """Outcome of one queued job, produced exactly once per request."""

    request_id: str
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    duration: float = 0.0  # seconds from enqueue to settle
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def failure(
        cls,
        request_id: str,
        error: str,
        error_kind: ErrorKind,
        duration: float = 0.0,
    ) -> "JobResult":
        return cls(
            request_id=request_id,
            success=False,
            error=error,
            error_kind=error_kind,
            duration=duration,
        )


def new_request_id() -> str:
    return str(uuid.uuid4())
