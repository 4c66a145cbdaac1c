"""Composition root: one consistent set of core components per page."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from waymark.journey.executor import JourneyExecutor
from waymark.journey.forms import FormOperations
from waymark.journey.recorder import JourneyRecorder
from waymark.locator.resolver import SelectorResolver
from waymark.stability.coordinator import StabilityCoordinator

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver
    from waymark.models.journey import JourneyDefinition, JourneyResult
    from waymark.settings.config import Settings

logger = logging.getLogger(__name__)

_DATA_HTML_PREFIX = "data:text/html,"
_INIT_TIMEOUT_MS = 10_000


class Orchestrator:
    """Own the resolver, coordinator, forms, executor and recorder for one page.

    Every component shares the same driver and the same stability
    coordinator, so page state observed by one is seen by all.

    Args:
        driver: Driver bound to the page being orchestrated.
        settings: Root settings; loaded from the environment when omitted.
    """

    def __init__(self, driver: BrowserDriver, settings: Settings | None = None) -> None:
        if settings is None:
            from waymark.settings import get_settings

            settings = get_settings()
        self.driver = driver
        self.settings = settings
        self.resolver = SelectorResolver(driver, settings.locator)
        self.coordinator = StabilityCoordinator(driver, settings.stability)
        self.forms = FormOperations(driver, self.resolver, self.coordinator, settings.journey)
        self.journeys = JourneyExecutor(driver, self.resolver, self.coordinator, self.forms, settings.journey)
        self.recorder = JourneyRecorder(driver)

    async def initialize_page(
        self,
        url: str | None = None,
        html: str | None = None,
        wait_for_stable: bool = False,
    ) -> None:
        """Load the starting document from *html* or *url*.

        ``data:text/html,`` URLs are decoded and set as content directly.
        With *wait_for_stable*, waits for the page to become interactive.
        """
        if html:
            await self.driver.set_content(html, timeout_ms=_INIT_TIMEOUT_MS)
        elif url:
            if url.startswith(_DATA_HTML_PREFIX):
                await self.driver.set_content(unquote(url[len(_DATA_HTML_PREFIX):]), timeout_ms=_INIT_TIMEOUT_MS)
            else:
                await self.driver.navigate(url, wait_until="domcontentloaded", timeout_ms=_INIT_TIMEOUT_MS)
            logger.info("Initialized page at %s", url[:80])

        if wait_for_stable:
            await self.coordinator.wait_for_interactive(_INIT_TIMEOUT_MS)

    async def run_journey(self, definition: JourneyDefinition | dict[str, Any] | list[Any] | str, **kwargs: Any) -> JourneyResult:
        """Shortcut for ``self.journeys.run_journey``."""
        return await self.journeys.run_journey(definition, **kwargs)

    def close(self) -> None:
        """Release driver subscriptions held by the coordinator and recorder."""
        self.recorder.close()
        self.coordinator.close()
