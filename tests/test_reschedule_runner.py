"""Tests for the browser runner that do not need a browser."""

from __future__ import annotations

import asyncio

import pytest

from app.automation import reschedule
from app.automation.error_normalizer import FRIENDLY_MESSAGES, FailureCategory, normalize_error_message
from app.automation.reschedule import (
    _wait_for_save_confirmation,
    date_display_variants,
    reschedule_appointment,
    run_reschedule_job,
)
from app.core.config import Settings, settings
from app.models.job import RunnerOutcome
from conftest import make_params


def test_date_display_variants_single_digit_parts() -> None:
    assert date_display_variants("03/05/2026") == [
        "03/05/2026",
        "3/5/2026",
        "Mar 5, 2026",
        "March 5, 2026",
    ]


def test_date_display_variants_drops_duplicates() -> None:
    assert date_display_variants("12/25/2026") == [
        "12/25/2026",
        "Dec 25, 2026",
        "December 25, 2026",
    ]


def test_date_display_variants_rejects_bad_dates() -> None:
    with pytest.raises(ValueError):
        date_display_variants("02/30/2026")


@pytest.mark.asyncio
async def test_missing_credentials_fail_without_launching_browser(monkeypatch) -> None:
    def _no_browser():
        raise AssertionError("browser must not be launched without credentials")

    monkeypatch.setattr(reschedule, "async_playwright", _no_browser)
    config = Settings(_env_file=None, sp_email="", sp_password="")

    outcome = await reschedule_appointment(make_params(), config)

    assert outcome.success is False
    assert "SP_EMAIL" in outcome.message
    assert "SP_PASSWORD" in outcome.message


@pytest.mark.asyncio
async def test_run_reschedule_job_caps_runtime(monkeypatch) -> None:
    async def _hangs(params, config=settings):
        await asyncio.sleep(10)
        return RunnerOutcome(success=True, message="unreachable")

    monkeypatch.setattr(reschedule, "reschedule_appointment", _hangs)
    monkeypatch.setattr(settings, "job_timeout_seconds", 0.05)

    outcome = await run_reschedule_job(make_params())

    assert outcome.success is False
    assert "timed out after 0.05 seconds" in outcome.message
    assert normalize_error_message(outcome.message) == FRIENDLY_MESSAGES[FailureCategory.GENERIC_TIMEOUT]


@pytest.mark.asyncio
async def test_run_reschedule_job_returns_runner_outcome(monkeypatch) -> None:
    async def _succeeds(params, config=settings):
        return RunnerOutcome(success=True, message=f"Appointment rescheduled to {params.new_date}")

    monkeypatch.setattr(reschedule, "reschedule_appointment", _succeeds)

    outcome = await run_reschedule_job(make_params())

    assert outcome.success is True
    assert outcome.message == "Appointment rescheduled to 03/05/2026"


class _FakeSaveButton:
    def __init__(self, enabled_polls: int | None):
        self.enabled_polls = enabled_polls
        self.checks = 0

    async def is_enabled(self) -> bool:
        self.checks += 1
        if self.enabled_polls is None:
            return True
        return self.checks <= self.enabled_polls


class _FakePage:
    async def wait_for_timeout(self, timeout: float) -> None:
        await asyncio.sleep(timeout / 1000)


@pytest.mark.asyncio
async def test_save_confirmation_seen_when_button_disables() -> None:
    button = _FakeSaveButton(enabled_polls=2)

    confirmed = await _wait_for_save_confirmation(_FakePage(), button, timeout_ms=1_000, poll_ms=5)

    assert confirmed is True
    assert button.checks == 3


@pytest.mark.asyncio
async def test_save_confirmation_missing_does_not_raise() -> None:
    button = _FakeSaveButton(enabled_polls=None)

    confirmed = await _wait_for_save_confirmation(_FakePage(), button, timeout_ms=50, poll_ms=5)

    assert confirmed is False
