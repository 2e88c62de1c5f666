"""Browser automation for SimplePractice and failure normalization."""

from app.automation.error_normalizer import (
    FailureCategory,
    classify_failure,
    normalize_error_message,
)

__all__ = [
    "FailureCategory",
    "classify_failure",
    "normalize_error_message",
]
