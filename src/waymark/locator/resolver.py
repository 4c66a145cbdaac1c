"""Multi-strategy selector resolution.

``SelectorResolver.resolve`` walks the fallback chain produced by
:func:`~waymark.locator.strategies.generate_strategies` and returns the first
element that matches (and, when requested, passes the interactability
probe). "Not found" is an expected outcome and is reported as ``None``;
only :meth:`SelectorResolver.wait_for_element` and
:meth:`SelectorResolver.acquire` escalate it to ``ElementNotFoundError``.

Every handle the resolver obtains is either returned to the caller or
disposed before the resolver moves on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from waymark.browser.driver import Viewport
from waymark.exceptions import ElementNotFoundError
from waymark.locator.strategies import generate_strategies
from waymark.models.locator import LocatorSpec, ResolutionStrategy

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver, ElementHandle
    from waymark.settings.config import LocatorSettings

logger = logging.getLogger(__name__)


async def release_handle(handle: ElementHandle) -> None:
    """Dispose *handle*, logging rather than raising if the page is gone."""
    try:
        await handle.dispose()
    except Exception as exc:
        logger.debug("Handle dispose failed: %s", exc)


class SelectorResolver:
    """Resolve ``LocatorSpec`` instances against one page.

    Args:
        driver: The page driver to query.
        settings: Locator defaults. Loaded from global settings when omitted.
        default_timeout_ms: Override for the per-pass budget when a spec has
            no ``timeout_ms``.
        retry_interval_ms: Override for the pause between retry passes.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        settings: LocatorSettings | None = None,
        *,
        default_timeout_ms: int | None = None,
        retry_interval_ms: int | None = None,
    ) -> None:
        if settings is None:
            from waymark.settings import get_settings

            settings = get_settings().locator
        self.driver = driver
        self.settings = settings
        self.default_timeout_ms = default_timeout_ms or settings.default_timeout_ms
        self.retry_interval_ms = settings.retry_interval_ms if retry_interval_ms is None else retry_interval_ms

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(self, spec: LocatorSpec) -> ElementHandle | None:
        """Resolve *spec* to a live handle, or ``None`` if nothing matches.

        The whole chain is tried once, then re-run ``retry_count`` more times
        with ``retry_interval_ms`` between passes. Each pass has its own
        ``timeout_ms`` budget.

        Raises:
            ValueError: If the selector is empty.
        """
        chain = generate_strategies(spec)
        timeout_ms = spec.timeout_ms or self.default_timeout_ms
        retries = self.settings.retry_count if spec.retry_count is None else spec.retry_count

        for attempt in range(retries + 1):
            if attempt:
                logger.debug(
                    "Retrying %r (pass %d/%d) after %dms",
                    spec.selector,
                    attempt + 1,
                    retries + 1,
                    self.retry_interval_ms,
                )
                await asyncio.sleep(self.retry_interval_ms / 1000)
            handle = await self._run_chain(spec, chain, timeout_ms)
            if handle is not None:
                return handle

        logger.debug("No strategy resolved %r (tried %s)", spec.selector, ", ".join(map(str, chain)))
        return None

    async def locate_element(self, spec: LocatorSpec) -> ElementHandle | None:
        """Single-strategy lookup with no fallback chain and no retries.

        Used by latency-sensitive callers such as per-field form filling.
        """
        strategy = generate_strategies(spec)[0]
        timeout_ms = spec.timeout_ms or self.default_timeout_ms
        return await self._try_strategy(spec, strategy, timeout_ms)

    async def wait_for_element(self, spec: LocatorSpec) -> ElementHandle:
        """Resolve *spec* or raise ``ElementNotFoundError``."""
        handle = await self.resolve(spec)
        if handle is None:
            raise ElementNotFoundError(spec.selector, [str(s) for s in generate_strategies(spec)])
        return handle

    @asynccontextmanager
    async def acquire(self, spec: LocatorSpec) -> AsyncIterator[ElementHandle]:
        """Scoped handle ownership: the handle is disposed on every exit path.

        Usage::

            async with resolver.acquire(spec) as handle:
                await handle.click()
        """
        handle = await self.wait_for_element(spec)
        try:
            yield handle
        finally:
            await release_handle(handle)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def strategy_timeout_ms(self, timeout_ms: int, chain_length: int) -> int:
        """Per-strategy sub-timeout, always strictly below *timeout_ms*."""
        ceiling = max(1, timeout_ms // 2)
        floor = min(self.settings.min_strategy_timeout_ms, ceiling)
        return max(floor, timeout_ms // max(2, chain_length))

    async def _run_chain(
        self,
        spec: LocatorSpec,
        chain: list[ResolutionStrategy],
        timeout_ms: int,
    ) -> ElementHandle | None:
        deadline = time.monotonic() + timeout_ms / 1000
        sub_timeout = self.strategy_timeout_ms(timeout_ms, len(chain))
        for strategy in chain:
            remaining_ms = int((deadline - time.monotonic()) * 1000)
            if remaining_ms <= 0:
                logger.debug("Budget of %dms exhausted before %s", timeout_ms, strategy)
                break
            handle = await self._try_strategy(spec, strategy, min(sub_timeout, remaining_ms))
            if handle is not None:
                logger.debug("Resolved %r via %s", spec.selector, strategy)
                return handle
        return None

    async def _try_strategy(
        self,
        spec: LocatorSpec,
        strategy: ResolutionStrategy,
        timeout_ms: int,
    ) -> ElementHandle | None:
        try:
            handle = await self.driver.query(strategy.kind, strategy.candidate_selector, timeout_ms=timeout_ms)
        except Exception as exc:
            logger.debug("Strategy %s failed: %s", strategy, exc)
            return None
        if handle is None or not spec.visibility_check:
            return handle

        keep = False
        try:
            keep = await self.verify_interactable(handle)
        finally:
            if not keep:
                await release_handle(handle)
        if not keep:
            logger.debug("Discarding %s candidate: not interactable", strategy)
            return None
        return handle

    async def verify_interactable(self, handle: ElementHandle) -> bool:
        """Probe that *handle* is visible, settled, in view and focusable."""
        probe_ms = self.settings.visibility_timeout_ms
        try:
            await handle.wait_for_state("visible", timeout_ms=probe_ms)
            await handle.wait_for_state("stable", timeout_ms=probe_ms)

            viewport = self.driver.viewport_size() or Viewport(
                width=self.settings.fallback_viewport_width,
                height=self.settings.fallback_viewport_height,
            )
            box = await handle.bounding_box()
            if box is None:
                return False
            if not box.within(viewport):
                await handle.scroll_into_view(timeout_ms=probe_ms)
                box = await handle.bounding_box()
                if box is None or box.y < 0:
                    return False

            await handle.focus()
            return True
        except Exception as exc:
            logger.debug("Interactability probe failed: %s", exc)
            return False
