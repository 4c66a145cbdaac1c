"""Page stability coordination and the page-readiness state machine.

The coordinator owns one page's ``PageState`` and its bounded transition
history. Stability is the conjunction of up to four signals (DOM mutation
quiescence, network idle, animation quiescence, custom predicate), sampled
every poll interval until all pass at once, then reconfirmed after a grace
delay.

``ERROR`` is sticky: transitions out of it are ignored until
:meth:`StabilityCoordinator.reset_state` is called.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from waymark.browser.driver import EVENT_DOM_CONTENT_LOADED, EVENT_LOAD
from waymark.exceptions import ActionError, PageStateError
from waymark.models.state import PageState, StabilitySnapshot, StateTransition
from waymark.stability.polling import poll_until
from waymark.stability.signals import (
    ANIMATIONS_RUNNING_JS,
    DOM_MUTATION_COUNT_JS,
    DOM_READY_JS,
    NetworkActivityTracker,
)

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver
    from waymark.settings.config import StabilitySettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound for the initial load-state wait inside ``wait_for_navigation``.
_NAVIGATION_LOAD_CAP_MS = 10_000


@dataclass
class StabilityOptions:
    """Per-call stability wait options. ``None`` means "use settings"."""

    timeout_ms: int | None = None
    check_dom: bool = True
    check_network_idle: bool = True
    check_animations: bool = True
    custom_condition: str | None = None


def _now_ms() -> float:
    return time.time() * 1000


class StabilityCoordinator:
    """Stability waits, coordinated actions and page state for one page."""

    def __init__(
        self,
        driver: BrowserDriver,
        settings: StabilitySettings | None = None,
        *,
        poll_interval_ms: int | None = None,
        grace_ms: int | None = None,
    ) -> None:
        if settings is None:
            from waymark.settings import get_settings

            settings = get_settings().stability
        self.driver = driver
        self.settings = settings
        self.poll_interval_ms = settings.poll_interval_ms if poll_interval_ms is None else poll_interval_ms
        self.grace_ms = settings.grace_ms if grace_ms is None else grace_ms

        self._state = PageState.LOADING
        self._history: deque[StateTransition] = deque(maxlen=settings.history_size)
        self._network = NetworkActivityTracker()
        self._network.attach(driver)
        self._unsubscribers = [
            driver.on_event(EVENT_DOM_CONTENT_LOADED, self._on_dom_ready),
            driver.on_event(EVENT_LOAD, self._on_dom_ready),
        ]

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def state(self) -> PageState:
        return self._state

    def _transition(self, new_state: PageState, trigger: str) -> None:
        if self._state == PageState.ERROR and new_state != PageState.ERROR:
            logger.debug("Ignoring %s transition while in error state (%s)", new_state.value, trigger)
            return
        transition = StateTransition(
            from_state=self._state,
            to_state=new_state,
            timestamp_ms=_now_ms(),
            trigger=trigger,
        )
        self._history.append(transition)
        self._state = new_state
        logger.debug("PageState: %s -> %s (%s)", transition.from_state.value, new_state.value, trigger)

    def _on_dom_ready(self, _event: Any = None) -> None:
        if self._state == PageState.LOADING:
            self._transition(PageState.INTERACTIVE, "dom ready")

    def mark_navigating(self, trigger: str = "navigation started") -> None:
        self._transition(PageState.NAVIGATING, trigger)

    def mark_navigation_complete(self, trigger: str = "navigation completed") -> None:
        self._transition(PageState.STABLE, trigger)

    def mark_error(self, trigger: str) -> None:
        self._transition(PageState.ERROR, trigger)

    def reset_state(self) -> None:
        """Return to ``LOADING`` and clear history. The only exit from ``ERROR``."""
        logger.debug("PageState reset from %s", self._state.value)
        self._state = PageState.LOADING
        self._history.clear()

    def current_state(self) -> dict[str, Any]:
        """Snapshot of the current state and the most recent transition."""
        now = _now_ms()
        last = self._history[-1] if self._history else None
        return {
            "state": self._state,
            "timestampMs": now,
            "lastTransition": last,
            "timeInCurrentStateMs": now - last.timestamp_ms if last else 0.0,
        }

    def history(self) -> list[StateTransition]:
        """Recorded transitions, oldest first."""
        return list(self._history)

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    async def is_page_ready(self, *, allow_navigating: bool = False) -> bool:
        """Non-blocking readiness check; never waits for stability."""
        if self._state == PageState.ERROR:
            return False
        if self._state == PageState.NAVIGATING and not allow_navigating:
            return False
        try:
            return bool(await self.driver.evaluate(DOM_READY_JS))
        except Exception as exc:
            logger.warning("Page readiness check failed: %s", exc)
            return False

    async def sample(self, options: StabilityOptions, *, waited_ms: float = 0.0) -> StabilitySnapshot:
        """Take one reading of every enabled stability signal."""
        mutations = 0
        if options.check_dom:
            mutations = await self._dom_mutation_count()

        network_idle = True
        if options.check_network_idle:
            network_idle = self._network.is_idle(
                self.settings.network_idle_ms,
                waited_ms=waited_ms,
                cap_ms=self.settings.network_busy_cap_ms,
            )

        animations_running = False
        if options.check_animations:
            try:
                animations_running = bool(await self.driver.evaluate(ANIMATIONS_RUNNING_JS))
            except Exception as exc:
                logger.debug("Animation check failed, assuming settled: %s", exc)

        custom_passed = True
        if options.custom_condition:
            try:
                custom_passed = bool(await self.driver.evaluate(options.custom_condition))
            except Exception as exc:
                logger.debug("Custom stability condition failed: %s", exc)
                custom_passed = False

        return StabilitySnapshot(
            dom_mutation_count=mutations,
            network_idle=network_idle,
            animations_running=animations_running,
            custom_predicate_passed=custom_passed,
        )

    async def _dom_mutation_count(self) -> int:
        try:
            return int(await self.driver.evaluate(DOM_MUTATION_COUNT_JS, self.settings.mutation_sample_ms))
        except Exception as exc:
            logger.debug("DOM mutation sampling failed: %s", exc)
            return self.settings.mutation_threshold

    async def _await_stability(self, options: StabilityOptions) -> None:
        timeout_ms = options.timeout_ms or self.settings.timeout_ms
        threshold = self.settings.mutation_threshold
        started = time.monotonic()
        deadline = started + timeout_ms / 1000
        settle_s = max(self.grace_ms, self.poll_interval_ms) / 1000
        if options.check_dom:
            settle_s += self.settings.mutation_sample_ms / 1000

        async def _stable() -> bool:
            waited_ms = (time.monotonic() - started) * 1000
            snapshot = await self.sample(options, waited_ms=waited_ms)
            if not snapshot.is_stable(threshold):
                return False
            # A lull must survive the grace delay before it counts as settled.
            remaining_s = deadline - time.monotonic()
            if remaining_s < settle_s:
                await asyncio.sleep(max(remaining_s, 0))
                return False
            await asyncio.sleep(max(self.grace_ms, self.poll_interval_ms) / 1000)
            if options.check_dom:
                return await self._dom_mutation_count() < threshold
            return True

        await poll_until(
            _stable,
            timeout_ms=timeout_ms,
            interval_ms=self.poll_interval_ms,
            description="stable page state",
        )

    async def wait_for_stable_state(self, options: StabilityOptions | None = None) -> None:
        """Block until every enabled signal passes and stays passing.

        Raises:
            WaitTimeoutError: If no stable, reconfirmed sample is seen in time.
        """
        await self._await_stability(options or StabilityOptions())
        self._transition(PageState.STABLE, "stability achieved")

    async def wait_for_interactive(self, timeout_ms: int = 10_000) -> None:
        """Wait for DOM readiness and move to ``INTERACTIVE``."""
        await self.driver.wait_for_load_state("domcontentloaded", timeout_ms=timeout_ms)

        async def _ready() -> bool:
            return bool(await self.driver.evaluate(DOM_READY_JS))

        await poll_until(_ready, timeout_ms=timeout_ms, interval_ms=self.poll_interval_ms, description="DOM ready")
        self._transition(PageState.INTERACTIVE, "page became interactive")

    async def wait_for_condition(self, expression: str, timeout_ms: int) -> Any:
        """Poll an in-page expression until it is truthy; returns its value."""

        async def _check() -> Any:
            return await self.driver.evaluate(expression)

        return await poll_until(
            _check,
            timeout_ms=timeout_ms,
            interval_ms=self.poll_interval_ms,
            description=f"condition {expression!r}",
        )

    async def wait_for_navigation(
        self,
        target: str | re.Pattern[str] | None = None,
        options: StabilityOptions | None = None,
    ) -> None:
        """Wait for a navigation to land on *target* and settle.

        A string target must equal the final URL; a pattern must match it
        (``re.search``). The URL is not required to differ from the one at
        call time.

        Raises:
            WaitTimeoutError: If the page does not load, match, or settle in time.
        """
        options = options or StabilityOptions()
        timeout_ms = options.timeout_ms or self.settings.timeout_ms
        self._transition(PageState.NAVIGATING, "navigation started")
        try:
            await self.driver.wait_for_load_state(
                "domcontentloaded",
                timeout_ms=min(timeout_ms, _NAVIGATION_LOAD_CAP_MS),
            )
            if target is not None:

                async def _url_matches() -> bool:
                    url = self.driver.current_url()
                    if isinstance(target, re.Pattern):
                        return target.search(url) is not None
                    return url == target

                await poll_until(
                    _url_matches,
                    timeout_ms=timeout_ms,
                    interval_ms=self.poll_interval_ms,
                    description=f"URL {target if isinstance(target, str) else target.pattern!r}",
                )
            await self._await_stability(options)
        except Exception as exc:
            self._transition(PageState.ERROR, f"navigation failed: {exc}")
            raise
        self._transition(PageState.STABLE, "navigation completed")

    # ------------------------------------------------------------------
    # Coordinated actions
    # ------------------------------------------------------------------

    async def coordinate_action(
        self,
        action: Callable[[], Awaitable[T]],
        post_check: Callable[[], Awaitable[bool]] | None = None,
        *,
        max_retries: int | None = None,
        retry_delay_ms: int | None = None,
        stability_timeout_ms: int | None = None,
        stability: StabilityOptions | None = None,
        allow_navigating: bool = False,
    ) -> T:
        """Run *action* between stability waits, retrying the whole sequence.

        Each attempt waits for stability, runs *action*, then checks
        *post_check* (once more after a short delay if it first fails). Up to
        ``max_retries`` extra attempts are made with exponential backoff.

        Raises:
            PageStateError: If the page is in ``ERROR``, or ``NAVIGATING``
                without *allow_navigating*.
            Exception: The last attempt's error once retries are exhausted;
                the state moves to ``ERROR``.
        """
        if self._state == PageState.ERROR:
            raise PageStateError(self._state.value)
        if self._state == PageState.NAVIGATING and not allow_navigating:
            raise PageStateError(self._state.value, "Page is navigating; coordinated action not allowed")

        retries = self.settings.max_retries if max_retries is None else max_retries
        base_delay = self.settings.retry_delay_ms if retry_delay_ms is None else retry_delay_ms
        stability_options = stability or StabilityOptions(
            timeout_ms=stability_timeout_ms or self.settings.action_stability_timeout_ms,
        )

        for attempt in range(retries + 1):
            try:
                await self.wait_for_stable_state(stability_options)
                result = await action()
                if post_check is not None and not await post_check():
                    await asyncio.sleep(self.settings.post_check_delay_ms / 1000)
                    if not await post_check():
                        raise ActionError("Post-action check failed")
                return result
            except Exception as exc:
                if attempt == retries:
                    self._transition(PageState.ERROR, f"coordinated action failed: {exc}")
                    raise
                delay_ms = base_delay * 2**attempt
                logger.warning("Action attempt %d failed, retrying in %dms: %s", attempt + 1, delay_ms, exc)
                await asyncio.sleep(delay_ms / 1000)

        raise AssertionError("unreachable")

    def close(self) -> None:
        """Unsubscribe from driver events."""
        self._network.detach()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()


