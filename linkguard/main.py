"""Main entry point for the LinkGuard decision service."""

import asyncio
import logging
import signal
import sys

from .allowlist import AllowListResolver
from .cache import DecisionCache
from .classifier import ClassifierClient, RetryPolicy
from .config import Config, load_config, validate_config
from .coordinator import DecisionCoordinator
from .dedup import InFlightDeduplicator
from .errors import ConfigurationError
from .messages import EventHub
from .navigation import NavigationSessionTracker
from .server import BridgeServer
from .settings import SettingsStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def build_coordinator(config: Config, sink: EventHub) -> DecisionCoordinator:
    """Construct the per-process coordinator and everything it owns."""
    cache = DecisionCache(ttl_seconds=config.cache_ttl_seconds)
    client = ClassifierClient(
        config.classifier_url,
        retry_policy=RetryPolicy(
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            jitter=config.retry_jitter,
        ),
        request_timeout=config.classifier_timeout,
    )
    return DecisionCoordinator(
        settings=SettingsStore(config.settings_path),
        client=client,
        resolver=AllowListResolver(safe_domains=config.safe_domains),
        cache=cache,
        deduplicator=InFlightDeduplicator(cache),
        sessions=NavigationSessionTracker(skip_window_seconds=config.skip_window_seconds),
        sink=sink,
        hover_risk_threshold=config.hover_risk_threshold,
        warning_page_url=config.warning_page_url,
    )


class LinkGuardService:
    """Owns the coordinator and bridge for the lifetime of the process."""

    def __init__(self, config: Config):
        self.config = config
        self.hub = EventHub()
        self.coordinator = build_coordinator(config, self.hub)
        self.server = BridgeServer(
            self.coordinator,
            self.hub,
            host=config.bridge_host,
            port=config.bridge_port,
        )
        self._stopped = asyncio.Event()

    async def start(self):
        """Start serving until stop() is called."""
        logger.info("Starting LinkGuard...")
        logger.info(f"Classifier endpoint: {self.coordinator.client.endpoint}")
        if not self.coordinator.settings.is_enabled:
            logger.info("Protection is disabled; enable it from the extension popup")
        await self.server.start()
        logger.info("LinkGuard running")
        await self._stopped.wait()

    async def stop(self):
        if self._stopped.is_set():
            return
        logger.info("Stopping LinkGuard...")
        await self.server.stop()
        self.coordinator.resolver.detach()
        self._stopped.set()
        logger.info("LinkGuard stopped")


async def run_service():
    """Run the LinkGuard service."""
    try:
        config = load_config()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        sys.exit(1)

    configure_logging(config.log_level)

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        sys.exit(1)

    service = LinkGuardService(config)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

    try:
        await service.start()
    finally:
        await service.stop()


def main():
    """Entry point."""
    asyncio.run(run_service())


if __name__ == "__main__":
    main()
