"""Worker entry point - initializes the store and runs the check scheduler."""
import asyncio
import contextlib
import logging
import signal
import sys

from .config import settings
from .database import init_db, close_db
from .services.scheduler import scheduler_service

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main():
    """Run until SIGINT/SIGTERM."""
    logger.info("Starting healthwatch worker")

    try:
        await init_db()
    except Exception:
        logger.critical("Cannot initialize the database, exiting", exc_info=True)
        sys.exit(1)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    scheduler_service.start()
    try:
        await stop_event.wait()
    finally:
        scheduler_service.stop()
        await close_db()
        logger.info("Shutdown complete")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
