from __future__ import annotations

import time

import pytest

from app.automation.error_normalizer import (
    ELLIPSIS,
    FALLBACK_MESSAGE,
    FRIENDLY_MESSAGES,
    MAX_MESSAGE_LENGTH,
    FailureCategory,
    classify_failure,
    normalize_error_message,
    strip_context_prefixes,
    strip_diagnostic_blocks,
)


def test_search_timeout_mentions_client_search() -> None:
    message = normalize_error_message(
        "Timeout 30000ms exceeded waiting for locator('...Search...')"
    )
    assert message == FRIENDLY_MESSAGES[FailureCategory.SEARCH_TIMEOUT]
    assert "client search" in message.lower()
    assert "timed out" in message.lower()
    assert "\n" not in message
    assert len(message) <= MAX_MESSAGE_LENGTH


def test_long_message_is_truncated_with_ellipsis() -> None:
    raw = "Unexpected failure while editing the appointment: " + "x" * 400
    message = normalize_error_message(raw)
    assert len(message) <= MAX_MESSAGE_LENGTH + len(ELLIPSIS)
    assert message.endswith(ELLIPSIS)


def test_message_at_cap_is_not_truncated() -> None:
    raw = "y" * MAX_MESSAGE_LENGTH
    assert normalize_error_message(raw) == raw


def test_diagnostic_log_block_is_removed() -> None:
    raw = (
        "Something unexpected happened\n"
        "=========================== logs ===========================\n"
        "waiting for element to be visible\n"
        "  locator resolved to hidden <div>\n"
        "============================================================\n"
        "after the block"
    )
    cleaned = strip_diagnostic_blocks(raw)
    assert "waiting for element" not in cleaned
    assert normalize_error_message(raw) == "Something unexpected happened after the block"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("page.goto: net::ERR_ABORTED", "net::ERR_ABORTED"),
        ("Error: locator.click: Element is detached", "Element is detached"),
        ("TimeoutError: something", "something"),
        ("No prefix here", "No prefix here"),
    ],
)
def test_context_prefixes_are_stripped(raw: str, expected: str) -> None:
    assert strip_context_prefixes(raw) == expected


@pytest.mark.parametrize(
    ("raw", "category"),
    [
        (
            "page.wait_for_url: Timeout 30000ms exceeded.\n"
            'waiting for navigation to "**/secure.simplepractice.com/**"',
            FailureCategory.AUTH_TIMEOUT,
        ),
        (
            'Locator.wait_for: Timeout 30000ms exceeded.\nCall log:\n  - waiting for get_by_role("textbox", name="Email") to be visible',
            FailureCategory.AUTH_TIMEOUT,
        ),
        (
            "page.goto: Timeout 60000ms exceeded.\nCall log:\n  - navigating to \"https://secure.simplepractice.com/calendar/appointments\"",
            FailureCategory.PAGE_LOAD_TIMEOUT,
        ),
        (
            'Locator.wait_for: Timeout 10000ms exceeded.\nCall log:\n  - waiting for get_by_role("textbox", name="Search clients") to be visible',
            FailureCategory.SEARCH_TIMEOUT,
        ),
        (
            'Locator.wait_for: Timeout 15000ms exceeded.\nCall log:\n  - waiting for get_by_role("textbox", name=re.compile(r"start date", re.IGNORECASE)) to be visible',
            FailureCategory.FORM_LOAD_TIMEOUT,
        ),
        ("Reschedule timed out after 180 seconds", FailureCategory.GENERIC_TIMEOUT),
        (
            'No upcoming appointments found for client "5551234567".',
            FailureCategory.NO_UPCOMING_APPOINTMENTS,
        ),
        (
            'No clickable appointment link found for client "5551234567".',
            FailureCategory.NO_CLICKABLE_APPOINTMENT,
        ),
        (
            'No upcoming appointment matching 03/02/2026 found for client "5551234567".',
            FailureCategory.NO_MATCHING_APPOINTMENT,
        ),
        ("Browser closed unexpectedly", FailureCategory.UNCATEGORIZED),
    ],
)
def test_classify_failure(raw: str, category: FailureCategory) -> None:
    assert classify_failure(raw) == category


def test_auth_timeout_takes_priority_over_generic() -> None:
    raw = "Timeout 30000ms exceeded while waiting for Sign in to complete"
    assert normalize_error_message(raw) == FRIENDLY_MESSAGES[FailureCategory.AUTH_TIMEOUT]


def test_clean_messages_pass_through() -> None:
    raw = "Automation credentials are not configured: SP_PASSWORD required"
    assert normalize_error_message(raw) == raw


def test_friendly_messages_are_stable_under_renormalization() -> None:
    for message in FRIENDLY_MESSAGES.values():
        assert normalize_error_message(message) == message


def test_whitespace_is_collapsed() -> None:
    assert normalize_error_message("  Browser\n\n crashed \t badly ") == "Browser crashed badly"


@pytest.mark.parametrize("raw", ["", "   \n\t", None])
def test_empty_message_gets_fallback(raw) -> None:
    assert normalize_error_message(raw) == FALLBACK_MESSAGE


def test_normalizer_is_deterministic() -> None:
    raw = "page.goto: Timeout 60000ms exceeded."
    assert normalize_error_message(raw) == normalize_error_message(raw)


def test_unterminated_delimiter_line_is_handled_in_linear_time() -> None:
    raw = "=== " + "a" * 20_000

    started = time.perf_counter()
    message = normalize_error_message(raw)
    elapsed = time.perf_counter() - started

    assert elapsed < 1.0
    assert message.endswith(ELLIPSIS)


def test_save_button_timeout_is_not_reported_as_form_load() -> None:
    raw = (
        "locator.click: Timeout 15000ms exceeded.\nCall log:\n"
        "  - waiting for get_by_role(\"button\", name=re.compile('save', re.IGNORECASE))"
    )
    assert classify_failure(raw) == FailureCategory.GENERIC_TIMEOUT
