"""Entry point for running the API server: python -m app"""

import asyncio
import sys

import uvicorn

from app.core.config import settings
from app.core.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


class RescheduleServer(uvicorn.Server):
    """uvicorn server that releases queued callers as soon as a stop signal arrives.

    uvicorn waits for open connections before running lifespan shutdown, and
    every queued request is an open connection. Resolving the waiting list
    first lets those requests answer with ServerShuttingDown and close.
    """

    _loop: asyncio.AbstractEventLoop | None = None

    async def serve(self, sockets=None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig, frame) -> None:
        from app.queue.job_queue import get_job_queue

        logger.info(f"Received signal {sig}, initiating graceful shutdown...")
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(get_job_queue().reject_waiting)
        super().handle_exit(sig, frame)


def main() -> int:
    config = uvicorn.Config(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
        # One browser session at a time; never run more than one worker process
        workers=1,
        timeout_graceful_shutdown=int(settings.shutdown_grace_seconds),
    )
    server = RescheduleServer(config)

    logger.info(
        f"Reschedule API running on http://{settings.host}:{settings.port}",
        routes=["POST /api/reschedule", "GET /api/health"],
    )
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server stopped by user (Ctrl+C)")
    except Exception as e:
        logger.error(f"Fatal error in server: {e}", exc_info=True)
        return 1
    finally:
        logger.info("Server process ended")
    return 0


if __name__ == "__main__":
    sys.exit(main())
