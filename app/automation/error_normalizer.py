"""Turn raw automation failures into short client-facing messages."""

from __future__ import annotations

import re
from enum import Enum

MAX_MESSAGE_LENGTH = 200
ELLIPSIS = "..."
FALLBACK_MESSAGE = "Reschedule failed for an unknown reason. Please try again."

# "=========== logs ===========" ... "==========================="
_LOG_BLOCK_RE = re.compile(
    r"^[ \t]*={3,}[^=\n]+={3,}[ \t]*$.*?^[ \t]*={3,}[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
# "page.goto: ", "locator.wait_for: ", "Error: ", "TimeoutError: "
_CONTEXT_PREFIX_RE = re.compile(r"^\s*(?:[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)+|\w*Error)\s*:\s+")
_WHITESPACE_RE = re.compile(r"\s+")

_TIMEOUT_RE = re.compile(r"\btimeout\b|timed out", re.IGNORECASE)


class FailureCategory(str, Enum):
    """Buckets a runner failure can fall into."""

    AUTH_TIMEOUT = "auth_timeout"
    PAGE_LOAD_TIMEOUT = "page_load_timeout"
    SEARCH_TIMEOUT = "search_timeout"
    FORM_LOAD_TIMEOUT = "form_load_timeout"
    GENERIC_TIMEOUT = "generic_timeout"
    NO_UPCOMING_APPOINTMENTS = "no_upcoming_appointments"
    NO_CLICKABLE_APPOINTMENT = "no_clickable_appointment"
    NO_MATCHING_APPOINTMENT = "no_matching_appointment"
    UNCATEGORIZED = "uncategorized"


_TIMEOUT_CONTEXT_PATTERNS: tuple[tuple[FailureCategory, tuple[str, ...]], ...] = (
    (
        FailureCategory.AUTH_TIMEOUT,
        ("sign in", "signin", "login", "log in", "email", "password", "wait_for_url", "waitforurl"),
    ),
    (
        FailureCategory.PAGE_LOAD_TIMEOUT,
        ("goto", "navigat", "load state", "load_state", "loadstate", "networkidle", "calendar"),
    ),
    (
        FailureCategory.SEARCH_TIMEOUT,
        ("search", "option"),
    ),
    (
        FailureCategory.FORM_LOAD_TIMEOUT,
        ("start date", "start_date", "appointment form"),
    ),
)

_APPOINTMENT_PATTERNS: tuple[tuple[FailureCategory, tuple[str, ...]], ...] = (
    (FailureCategory.NO_UPCOMING_APPOINTMENTS, ("no upcoming appointments",)),
    (FailureCategory.NO_CLICKABLE_APPOINTMENT, ("no clickable appointment",)),
    (
        FailureCategory.NO_MATCHING_APPOINTMENT,
        ("no upcoming appointment matching", "no appointment matching", "no appointment found on"),
    ),
)

FRIENDLY_MESSAGES: dict[FailureCategory, str] = {
    FailureCategory.AUTH_TIMEOUT: (
        "Timed out while signing in to SimplePractice. "
        "The site may be slow or the credentials may be invalid."
    ),
    FailureCategory.PAGE_LOAD_TIMEOUT: (
        "Timed out waiting for a SimplePractice page to load. Please try again."
    ),
    FailureCategory.SEARCH_TIMEOUT: (
        "Client search timed out. No matching client appeared for the given search."
    ),
    FailureCategory.FORM_LOAD_TIMEOUT: (
        "Timed out waiting for the appointment form to load. Please try again."
    ),
    FailureCategory.GENERIC_TIMEOUT: (
        "The reschedule operation timed out. Please try again."
    ),
    FailureCategory.NO_UPCOMING_APPOINTMENTS: (
        "No upcoming appointments were found for this client."
    ),
    FailureCategory.NO_CLICKABLE_APPOINTMENT: (
        "An upcoming appointment was listed but could not be opened."
    ),
    FailureCategory.NO_MATCHING_APPOINTMENT: (
        "No upcoming appointment matches the requested current appointment date."
    ),
}
_FRIENDLY_MESSAGE_SET = frozenset(FRIENDLY_MESSAGES.values())


def strip_diagnostic_blocks(text: str) -> str:
    return _LOG_BLOCK_RE.sub(" ", text)


def strip_context_prefixes(text: str) -> str:
    text = text.strip()
    while True:
        stripped = _CONTEXT_PREFIX_RE.sub("", text, count=1)
        if stripped == text:
            return text
        text = stripped


def classify_failure(raw_message: str | None) -> FailureCategory:
    """Classify a raw failure message into a category.

    Timeouts are checked first, narrowed by where in the flow they happened;
    appointment lookup failures come after.
    """

    # Action prefixes like "page.goto:" stay in: they say where it failed
    haystack = strip_diagnostic_blocks(raw_message or "").lower()

    if _TIMEOUT_RE.search(haystack):
        # The headline names the failing action; the call log below it often
        # mentions earlier pages and would misattribute the timeout.
        headline = haystack.split("call log:", 1)[0]
        for candidate in (headline, haystack):
            for category, patterns in _TIMEOUT_CONTEXT_PATTERNS:
                if _first_match(candidate, patterns) is not None:
                    return category
        return FailureCategory.GENERIC_TIMEOUT

    for category, patterns in _APPOINTMENT_PATTERNS:
        if _first_match(haystack, patterns) is not None:
            return category

    return FailureCategory.UNCATEGORIZED


def normalize_error_message(raw_message: str | None) -> str:
    """
    Reduce a raw runner failure to one short, readable line.

    Args:
        raw_message: Failure text, possibly multi-line with Playwright call logs

    Returns:
        Single-line message of at most MAX_MESSAGE_LENGTH characters plus an
        ellipsis when truncated
    """
    text = strip_context_prefixes(strip_diagnostic_blocks(raw_message or ""))
    if text in _FRIENDLY_MESSAGE_SET:
        return text

    category = classify_failure(raw_message)
    if category is not FailureCategory.UNCATEGORIZED:
        text = FRIENDLY_MESSAGES[category]

    text = _WHITESPACE_RE.sub(" ", text).strip()

    if len(text) > MAX_MESSAGE_LENGTH:
        text = text[:MAX_MESSAGE_LENGTH].rstrip() + ELLIPSIS

    return text or FALLBACK_MESSAGE


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
