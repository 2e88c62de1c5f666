"""Tests for the uvicorn server wrapper used by python -m app."""

from __future__ import annotations

import asyncio
import signal

import pytest
import uvicorn

from app.__main__ import RescheduleServer
from app.models.job import ErrorKind
from app.queue import job_queue
from app.queue.job_queue import JobQueue
from conftest import FakeRunner, make_params


@pytest.mark.asyncio
async def test_handle_exit_resolves_waiting_jobs_before_connections_drain(monkeypatch) -> None:
    gate = asyncio.Event()
    queue = JobQueue(FakeRunner(gate=gate), max_queue_size=5, wait_timeout=5)
    monkeypatch.setattr(job_queue, "_queue_instance", queue)

    running = queue.submit(make_params("running"))
    waiting = [queue.submit(make_params(name)) for name in ("q1", "q2")]

    server = RescheduleServer(uvicorn.Config("app.main:app"))
    server._loop = asyncio.get_running_loop()
    server.handle_exit(signal.SIGTERM, None)

    assert server.should_exit is True
    results = await asyncio.wait_for(asyncio.gather(*waiting), timeout=1)
    for result in results:
        assert result.success is False
        assert result.error_kind == ErrorKind.SERVER_SHUTTING_DOWN
    assert queue.is_shutting_down
    assert not running.done()

    gate.set()
    assert (await running).success
