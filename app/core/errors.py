"""Error handling at the process and HTTP boundaries."""

import asyncio
import sys
from typing import Any, Sequence

from app.core.logging import get_logger
from app.models.schemas import MISSING_FIELDS_MESSAGE

logger = get_logger(__name__)


def validation_error_message(errors: Sequence[Any]) -> str:
    """
    Pick one human-readable message from pydantic validation errors.

    Missing fields win over format problems so the client fixes the
    request shape first.
    """
    if not errors:
        return "Invalid request"

    for error in errors:
        if error.get("type") == "missing":
            return MISSING_FIELDS_MESSAGE

    first = errors[0]
    message = str(first.get("msg", "Invalid request"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    if first.get("type") in ("json_invalid", "model_attributes_type", "dict_type"):
        return "Request body must be a JSON object"
    if first.get("type") == "string_type":
        field = first.get("loc", ("body", "field"))[-1]
        return f"{field} must be a string"
    return message


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exception = context.get("exception")
    logger.error(
        f"Unhandled error in event loop: {context.get('message', 'no message')}",
        exc_info=exception if exception is not None else False,
    )


def _handle_uncaught_exception(exc_type, exc_value, exc_traceback) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.error(
        f"Uncaught exception: {exc_value}",
        exc_info=(exc_type, exc_value, exc_traceback),
    )


def install_process_error_handlers(loop: asyncio.AbstractEventLoop) -> None:
    """Log and swallow stray errors so the queue keeps draining."""
    loop.set_exception_handler(_handle_loop_exception)
    sys.excepthook = _handle_uncaught_exception
