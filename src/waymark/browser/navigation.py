"""Resilient page navigation with automatic wait-strategy fallback.

Pages that hold WebSocket or long-polling connections open never reach
``networkidle``. ``resilient_goto`` wraps Playwright's ``page.goto`` with a
fallback chain: try ``networkidle`` first, then ``load``, then
``domcontentloaded``.

``spa_navigate`` moves a single-page application to another route without a
full reload, so client-side router state survives the transition.
"""

from __future__ import annotations

import json as _json
import logging
from typing import TYPE_CHECKING, Literal

from playwright.async_api import Error as PlaywrightError, Page, Response, TimeoutError as PlaywrightTimeout

from waymark.exceptions import ActionError, NavigationError
from waymark.models.locator import StrategyKind

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver

logger = logging.getLogger(__name__)

# Playwright error substrings that indicate non-retryable navigation failures.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_CERT_COMMON_NAME_INVALID",
    "ERR_ADDRESS_UNREACHABLE",
)

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded"]

# Route element lookup timeout; the link either exists already or it does not.
_ROUTE_LINK_TIMEOUT_MS = 500

_PUSH_STATE_JS = """(path) => {
    window.history.pushState({}, '', path);
    window.dispatchEvent(new PopStateEvent('popstate', { state: {} }));
    return window.location.pathname + window.location.search + window.location.hash;
}"""

_ASSIGN_LOCATION_JS = "(path) => { window.location.href = path; }"


async def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "networkidle",
) -> Response | None:
    """Navigate to *url* with automatic wait-strategy fallback.

    Tries *wait_until* first (default ``networkidle``). If that times out,
    retries with progressively less strict strategies using the same timeout
    for each attempt.

    Args:
        page: Playwright page instance.
        url: Target URL to navigate to.
        timeout_ms: Timeout per attempt in milliseconds.
        wait_until: Preferred initial wait strategy.

    Returns:
        The Playwright ``Response`` for the main frame navigation,
        or ``None`` if the page did not produce a response.

    Raises:
        NavigationError: On DNS, connection, or TLS failures.
        PlaywrightTimeout: If all fallback strategies also time out.
    """
    strategies = _build_fallback_chain(wait_until)

    last_error: PlaywrightTimeout | None = None
    for strategy in strategies:
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, strategy, timeout_ms)
            return await page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except PlaywrightError as exc:
            error_msg = str(exc)
            for pattern in _NON_RETRYABLE_ERRORS:
                if pattern in error_msg:
                    reason = pattern.replace("ERR_", "").replace("_", " ").lower()
                    logger.warning("Navigation to %s failed (non-retryable): %s", url, pattern)
                    raise NavigationError(url, reason) from exc
            if isinstance(exc, PlaywrightTimeout):
                logger.warning(
                    "Navigation to %s timed out with wait_until=%s, retrying with weaker strategy",
                    url,
                    strategy,
                )
                last_error = exc
            else:
                raise

    raise last_error  # type: ignore[misc]


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*.

    If *preferred* is in the default chain, returns from that point onward.
    Otherwise returns ``[preferred]`` followed by the full default chain.
    """
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]


def _route_link_selector(path: str) -> str:
    quoted = _json.dumps(path)
    return f"a[href={quoted}], [data-to={quoted}], [to={quoted}]"


async def spa_navigate(driver: BrowserDriver, path: str, *, timeout_ms: int = 10_000) -> str:
    """Route a single-page application to *path* without a full reload.

    Works down a ladder of techniques and stops at the first that succeeds:

    1. Click an anchor or router link whose target is *path*.
    2. ``history.pushState`` followed by a synthetic ``popstate`` event.
    3. Assign ``window.location.href`` directly.

    After each technique the page is given *timeout_ms* to settle to
    ``networkidle``; a settle timeout alone does not fail the technique.

    Returns:
        The name of the technique that succeeded.

    Raises:
        ActionError: If every technique fails.
    """
    failures: list[str] = []

    handle = None
    try:
        handle = await driver.query(StrategyKind.CSS, _route_link_selector(path), timeout_ms=_ROUTE_LINK_TIMEOUT_MS)
        if handle is not None and await handle.bounding_box() is not None:
            await handle.click(timeout_ms=timeout_ms)
            await _settle(driver, timeout_ms)
            logger.debug("SPA navigation to %s via route link", path)
            return "link"
    except Exception as exc:
        failures.append(f"link: {exc}")
    finally:
        if handle is not None:
            await handle.dispose()

    try:
        await driver.evaluate(_PUSH_STATE_JS, path)
        await _settle(driver, timeout_ms)
        logger.debug("SPA navigation to %s via history.pushState", path)
        return "history"
    except Exception as exc:
        failures.append(f"history: {exc}")

    try:
        await driver.evaluate(_ASSIGN_LOCATION_JS, path)
    except Exception as exc:
        # Assigning location tears down the execution context mid-evaluate.
        if "context was destroyed" not in str(exc).lower():
            failures.append(f"location: {exc}")
            raise ActionError(f"SPA navigation to {path} failed: {'; '.join(failures)}") from exc
    await _settle(driver, timeout_ms)
    logger.debug("SPA navigation to %s via location assignment", path)
    return "location"


async def _settle(driver: BrowserDriver, timeout_ms: int) -> None:
    try:
        await driver.wait_for_load_state("networkidle", timeout_ms=timeout_ms)
    except Exception:
        logger.debug("Page did not reach networkidle within %dms after SPA navigation", timeout_ms)
