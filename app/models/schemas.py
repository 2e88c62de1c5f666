"""Pydantic schemas for request/response models."""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from app.models.job import JobParams, JobResult

DATE_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")
TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}\s?(AM|PM)$", re.IGNORECASE)

REQUIRED_FIELDS = ("clientSearch", "newDate", "newTime")
MISSING_FIELDS_MESSAGE = f"Missing required fields: {', '.join(REQUIRED_FIELDS)}"


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RescheduleRequest(CamelModel):
    """Body of POST /api/reschedule."""

    client_search: str
    new_date: str
    new_time: str
    current_appointment_date: Optional[str] = None

    @field_validator("client_search")
    @classmethod
    def _client_search_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(MISSING_FIELDS_MESSAGE)
        return value

    @field_validator("new_date")
    @classmethod
    def _new_date_format(cls, value: str) -> str:
        if not value.strip():
            raise ValueError(MISSING_FIELDS_MESSAGE)
        if not DATE_PATTERN.fullmatch(value):
            raise ValueError('newDate must be in MM/DD/YYYY format (e.g. "03/05/2026")')
        return value

    @field_validator("new_time")
    @classmethod
    def _new_time_format(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(MISSING_FIELDS_MESSAGE)
        if not TIME_PATTERN.fullmatch(value):
            raise ValueError('newTime must be in HH:MM AM/PM format (e.g. "03:00 PM")')
        return value

    @field_validator("current_appointment_date")
    @classmethod
    def _current_date_format(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not DATE_PATTERN.fullmatch(value):
            raise ValueError(
                'currentAppointmentDate must be in MM/DD/YYYY format (e.g. "03/02/2026")'
            )
        return value

    def to_job_params(self) -> JobParams:
        return JobParams(
            client_search=self.client_search,
            new_date=self.new_date,
            new_time=self.new_time,
            current_appointment_date=self.current_appointment_date,
        )


class RescheduleResponse(CamelModel):
    """Response of POST /api/reschedule."""

    success: bool
    request_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    duration: float = 0.0

    @classmethod
    def from_result(cls, result: JobResult) -> "RescheduleResponse":
        return cls(
            success=result.success,
            request_id=result.request_id,
            message=result.message,
            error=result.error,
            duration=result.duration,
        )

    def to_content(self) -> dict[str, Any]:
        """Serialize with camelCase keys, leaving out whichever of message/error is unset."""
        return self.model_dump(by_alias=True, exclude_none=True)
