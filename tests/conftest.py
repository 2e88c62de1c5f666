"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import time

import pytest

from app.models.job import JobParams, RunnerOutcome
from app.queue.job_queue import reset_job_queue


class FakeRunner:
    """Stand-in for the browser runner that records how it was called."""

    def __init__(
        self,
        delay: float = 0.0,
        failures: dict[str, str] | None = None,
        errors: dict[str, Exception] | None = None,
        gate: asyncio.Event | None = None,
    ):
        self.delay = delay
        self.failures = failures or {}
        self.errors = errors or {}
        self.gate = gate
        self.events: list[tuple[str, str, float]] = []
        self.active = 0
        self.max_active = 0

    @property
    def started(self) -> list[str]:
        return [name for kind, name, _ in self.events if kind == "start"]

    def span(self, client_search: str) -> tuple[float, float]:
        start = next(t for kind, name, t in self.events if kind == "start" and name == client_search)
        end = next(t for kind, name, t in self.events if kind == "end" and name == client_search)
        return start, end

    async def __call__(self, params: JobParams) -> RunnerOutcome:
        name = params.client_search
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(("start", name, time.monotonic()))
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if name in self.errors:
                raise self.errors[name]
            if name in self.failures:
                return RunnerOutcome(success=False, message=self.failures[name])
            return RunnerOutcome(success=True, message=f"Rescheduled {name}")
        finally:
            self.active -= 1
            self.events.append(("end", name, time.monotonic()))


def make_params(client_search: str = "5551234567", **overrides) -> JobParams:
    values = {
        "client_search": client_search,
        "new_date": "03/05/2026",
        "new_time": "3:00 PM",
    }
    values.update(overrides)
    return JobParams(**values)


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture(autouse=True)
def _reset_queue_singleton():
    reset_job_queue()
    yield
    reset_job_queue()
