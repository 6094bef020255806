"""
Background Refresher - keeps the price cache warm.

Runs as a separate process from the API server and periodically asks
the price service for current prices. Since the service only refetches
when the cached record is past the staleness window, each tick is a
single KV read unless a refresh is actually due.

Run this refresher with: python -m tsla52week.workers.refresher
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from ..core.config import settings
from ..models.schemas import PriceSource
from ..services.prices import PriceService, price_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger("refresher")


class PriceRefresher:
    """
    Periodic price refresh loop.

    Errors are logged and the loop keeps going; a failed refresh is
    simply retried on the next tick.
    """

    def __init__(
        self,
        service: Optional[PriceService] = None,
        poll_interval: Optional[float] = None
    ):
        self.service = service or price_service
        self.poll_interval = poll_interval if poll_interval is not None else settings.cache.refresh_poll_interval
        self.running = False
        self.refreshes = 0
        self.failures = 0
        self._stop_event = asyncio.Event()

        logger.info("Refresher initialized")
        logger.info(f"  Poll interval: {self.poll_interval}s")
        logger.info(f"  Staleness window: {settings.cache.staleness_seconds}s")

    async def tick(self) -> PriceSource:
        """Run one refresh check and record its outcome."""
        result = await self.service.get_prices()

        if result.source == PriceSource.LIVE:
            self.refreshes += 1
            logger.info(f"Prices refreshed: high={result.data.high}, low={result.data.low}")
        elif result.source in (PriceSource.STALE, PriceSource.DEFAULT):
            self.failures += 1
            logger.warning(f"Refresh failed, cache serves {result.source.value} prices")
        else:
            logger.debug(f"Prices still fresh ({result.source.value})")
        return result.source

    async def start(self):
        """
        Start the refresher main loop.

        Runs until stop() is called, sleeping `poll_interval` between ticks.
        """
        self.running = True
        self._stop_event.clear()
        logger.info("Refresher started")

        while self.running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                logger.info("Refresher received cancellation signal")
                break
            except Exception as e:
                self.failures += 1
                logger.error(f"Unexpected error in refresher loop: {str(e)}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Refresher stopped. Refreshes: {self.refreshes}, Failures: {self.failures}")

    async def stop(self):
        """Signal the refresher to stop gracefully."""
        logger.info("Refresher stop requested")
        self.running = False
        self._stop_event.set()


async def main():
    """
    Main entry point for the refresher process.

    Sets up signal handlers for graceful shutdown and starts the loop.
    """
    refresher = PriceRefresher()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Shutdown signal received")
        asyncio.create_task(refresher.stop())

    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)
    except NotImplementedError:
        # Windows event loops have no add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: loop.call_soon_threadsafe(signal_handler))
        signal.signal(signal.SIGTERM, lambda s, f: loop.call_soon_threadsafe(signal_handler))

    try:
        await refresher.start()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        await refresher.stop()


if __name__ == "__main__":
    print("=" * 60)
    print("TSLA 52 WEEK PRICE REFRESHER")
    print("=" * 60)
    print("Keeps the KV price cache fresh.")
    print("Press Ctrl+C to stop gracefully.")
    print("=" * 60)

    asyncio.run(main())
