"""Progress notifications for interactive scrapes."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ScrapeNotifier(ABC):
    """Receives live progress of an on-demand scrape (e.g. to push to a UI)."""

    @abstractmethod
    async def progress(self, message: str) -> None:
        pass

    @abstractmethod
    async def listing_found(self, address: str) -> None:
        pass

    @abstractmethod
    async def error(self, message: str) -> None:
        pass

    @abstractmethod
    async def complete(self) -> None:
        pass


class LoggingNotifier(ScrapeNotifier):
    """Default notifier that writes every event to the log."""

    async def progress(self, message: str) -> None:
        logger.info(message)

    async def listing_found(self, address: str) -> None:
        logger.info(f"Listing found: {address}")

    async def error(self, message: str) -> None:
        logger.error(message)

    async def complete(self) -> None:
        logger.info("Scrape complete")
