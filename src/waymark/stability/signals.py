"""Stability signal sources: in-page probes and network activity tracking."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from waymark.browser.driver import EVENT_REQUEST, EVENT_REQUEST_FAILED, EVENT_REQUEST_FINISHED

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver

logger = logging.getLogger(__name__)

# Counts DOM mutations observed during a short sampling window.
DOM_MUTATION_COUNT_JS = """(sampleMs) => new Promise((resolve) => {
    let count = 0;
    const observer = new MutationObserver((records) => { count += records.length; });
    observer.observe(document.body || document.documentElement, {
        childList: true, subtree: true, attributes: true, characterData: true,
    });
    setTimeout(() => { observer.disconnect(); resolve(count); }, sampleMs);
})"""

# True while any visible element has a running animation or transition.
ANIMATIONS_RUNNING_JS = """() => {
    const isVisible = (el) => {
        if (!el || !(el instanceof Element)) return true;
        const style = getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    if (typeof document.getAnimations === 'function') {
        return document.getAnimations().some((anim) =>
            anim.playState === 'running' && isVisible(anim.effect && anim.effect.target));
    }
    for (const el of document.querySelectorAll('*')) {
        const style = getComputedStyle(el);
        if (style.animationName !== 'none' && style.animationPlayState === 'running' && isVisible(el)) {
            return true;
        }
    }
    return false;
}"""

DOM_READY_JS = "() => document.readyState === 'interactive' || document.readyState === 'complete'"


class NetworkActivityTracker:
    """Track in-flight requests from driver network events.

    The page is idle when nothing is in flight and no request started or
    finished within the idle window. Once a wait has lasted longer than the
    busy cap, the signal passes regardless, so a long-lived connection
    (WebSocket upgrade, long poll) cannot block stability forever.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._in_flight: set[int] = set()
        self._last_activity = float("-inf")
        self._unsubscribers: list[Callable[[], None]] = []

    def attach(self, driver: BrowserDriver) -> None:
        """Subscribe to the driver's request lifecycle events."""
        self._unsubscribers.extend(
            [
                driver.on_event(EVENT_REQUEST, self.on_request),
                driver.on_event(EVENT_REQUEST_FINISHED, self.on_request_done),
                driver.on_event(EVENT_REQUEST_FAILED, self.on_request_done),
            ]
        )

    def detach(self) -> None:
        """Remove all driver subscriptions."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def on_request(self, request: Any) -> None:
        self._in_flight.add(id(request))
        self._last_activity = self._clock()

    def on_request_done(self, request: Any) -> None:
        self._in_flight.discard(id(request))
        self._last_activity = self._clock()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def is_idle(self, idle_ms: float, *, waited_ms: float = 0.0, cap_ms: float | None = None) -> bool:
        """Return True if the network has been quiet for *idle_ms*.

        Args:
            idle_ms: Required quiet window.
            waited_ms: How long the caller has been waiting so far.
            cap_ms: Hard cap after which the signal always passes.
        """
        if cap_ms is not None and waited_ms >= cap_ms:
            if self._in_flight:
                logger.debug("Network busy cap reached with %d request(s) in flight", len(self._in_flight))
            return True
        if self._in_flight:
            return False
        return (self._clock() - self._last_activity) * 1000 >= idle_ms
