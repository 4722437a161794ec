#!/usr/bin/env python3
"""
Main entry point for the live transit relay.
Wires the feed poller, query layer and web server together and runs until signalled.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from transit_live.api.web_server import WebServer
from transit_live.core.application import Application
from transit_live.core.config import ApplicationConfig
from transit_live.core.resource_manager import ResourceManager
from transit_live.data.repositories.feed_cache import FeedCache
from transit_live.data.sources.gtfs_realtime import GTFSRealtimeSource
from transit_live.services.feed_poller import FeedPollerService
from transit_live.services.query_service import FeedQueryService

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


class TransitRelaySystem:
    """Main system coordinator that integrates all relay components"""

    def __init__(self, config: Optional[ApplicationConfig] = None):
        self.config = config or ApplicationConfig.from_env()
        self.resource_manager = ResourceManager(request_timeout_seconds=self.config.request_timeout_seconds)
        self.app = Application(self.resource_manager)
        self.cache: Optional[FeedCache] = None
        self.poller: Optional[FeedPollerService] = None
        self.query_service: Optional[FeedQueryService] = None
        self.web_server: Optional[WebServer] = None
        self.shutdown_event = asyncio.Event()

    def setup(self):
        """Initialize and register all services"""
        logger.info("Setting up transit relay...")

        self.cache = FeedCache()
        source = GTFSRealtimeSource(self.resource_manager, timeout_seconds=self.config.request_timeout_seconds)
        self.poller = FeedPollerService(self.config, source, self.cache)
        self.query_service = FeedQueryService(self.cache)
        self.web_server = WebServer(self.config, self.poller, self.query_service, self.resource_manager)

        # Services start in registration order and stop in reverse
        self.app.register_service("feed_poller", self.poller)
        self.app.register_service("web_server", self.web_server)
        logger.info("All services initialized and registered")

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._request_shutdown, signum)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(signum, lambda s, _frame: self._request_shutdown(s))

    def _request_shutdown(self, signum):
        logger.info(f"Received signal {signum}, shutting down...")
        self.shutdown_event.set()

    async def start(self):
        logger.info("Starting transit relay...")
        self._setup_signal_handlers()
        self.setup()
        await self.app.start()
        await self.shutdown_event.wait()

    async def stop(self):
        """Stop the system gracefully"""
        logger.info("Stopping transit relay...")
        self.shutdown_event.set()
        await self.app.stop()
        logger.info("System stopped gracefully")


async def main():
    """Main entry point"""
    config = ApplicationConfig.from_env()
    configure_logging(config.log_level)
    system = TransitRelaySystem(config)

    try:
        await system.start()
    except Exception as e:
        logger.error(f"System error: {e}", exc_info=True)
        raise
    finally:
        await system.stop()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except Exception:
        sys.exit(1)


if __name__ == "__main__":
    run()
