"""
Unified Entry Point for Cloud Server Deployment

Starts the FastAPI API server and, unless debug mode is on, the
background price refresher, for hosts that only allow one startup
command. Each component runs in its own process.
"""

import logging
import sys
import signal
from multiprocessing import Process

from tsla52week.core.config import Settings, settings, validate_environment
from tsla52week.core.errors import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def run_api_server():
    """Run the FastAPI server in a separate process."""
    import uvicorn
    from tsla52week.main import app

    port = settings.server_port
    logger.info(f"Starting FastAPI server on 0.0.0.0:{port}...")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
        access_log=True
    )


def run_refresher():
    """Run the price refresher in a separate process."""
    import asyncio
    from tsla52week.workers.refresher import main as refresher_main

    logger.info(f"Starting price refresher (every {settings.cache.refresh_poll_interval:.0f}s)...")
    asyncio.run(refresher_main())


def plan_processes(config: Settings) -> list[Process]:
    """
    Decide which components to run for the given configuration.

    Debug mode serves fixed prices without touching the KV store or the
    quote provider, so there is nothing for the refresher to do.
    """
    processes = [Process(target=run_api_server, name="API-Server")]
    if config.debug:
        logger.info("Debug mode: price refresher not started")
    elif not config.quote.api_key:
        logger.warning("ALPHA_VANTAGE_API_KEY is not set: price refresher not started")
    else:
        processes.append(Process(target=run_refresher, name="Price-Refresher"))
    return processes


def log_configuration(config: Settings) -> None:
    logger.info(f"Symbol: {config.quote.symbol}, staleness window: {config.cache.staleness_seconds}s")
    try:
        validate_environment()
    except ConfigError as e:
        logger.warning(f"⚠ {str(e)}")


def main():
    """
    Main entry point that starts the API and the refresher.

    Uses multiprocessing to run the components concurrently.
    """
    log_configuration(settings)
    processes = plan_processes(settings)

    for process in processes:
        process.start()
        logger.info(f"{process.name} started (PID: {process.pid})")

    def shutdown_handler(signum, frame):
        logger.info("Shutdown signal received, stopping processes...")
        for process in processes:
            process.terminate()
        for process in processes:
            process.join(timeout=5)
        logger.info("Shutdown complete")
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    try:
        for process in processes:
            process.join()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        shutdown_handler(None, None)


if __name__ == "__main__":
    main()
