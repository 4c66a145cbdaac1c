"""Playwright implementation of the browser driver interface."""

from __future__ import annotations

import logging
from typing import Any, Callable

from playwright.async_api import (
    ElementHandle as PlaywrightElementHandle,
    Locator,
    Page,
    TimeoutError as PlaywrightTimeout,
)

from waymark.browser.driver import BoundingBox, BrowserDriver, ElementHandle, ElementState, LoadState, Viewport
from waymark.browser.navigation import resilient_goto
from waymark.exceptions import WaitTimeoutError
from waymark.models.locator import StrategyKind

logger = logging.getLogger(__name__)


class PlaywrightElement(ElementHandle):
    """``ElementHandle`` backed by a Playwright element handle."""

    def __init__(self, handle: PlaywrightElementHandle) -> None:
        self._handle = handle

    async def click(self, *, timeout_ms: int | None = None) -> None:
        await self._handle.click(timeout=timeout_ms)

    async def fill(self, value: str, *, timeout_ms: int | None = None) -> None:
        await self._handle.fill(value, timeout=timeout_ms)

    async def type(self, text: str, *, delay_ms: int = 0, timeout_ms: int | None = None) -> None:
        await self._handle.type(text, delay=delay_ms, timeout=timeout_ms)

    async def set_input_files(self, paths: list[str], *, timeout_ms: int | None = None) -> None:
        await self._handle.set_input_files(paths, timeout=timeout_ms)

    async def check(self) -> None:
        await self._handle.check()

    async def uncheck(self) -> None:
        await self._handle.uncheck()

    async def select_option(self, value: str) -> None:
        # Try the option value first, then its visible label.
        selected = await self._handle.select_option(value=value)
        if not selected:
            await self._handle.select_option(label=value)

    async def bounding_box(self) -> BoundingBox | None:
        box = await self._handle.bounding_box()
        if box is None:
            return None
        return BoundingBox(x=box["x"], y=box["y"], width=box["width"], height=box["height"])

    async def scroll_into_view(self, *, timeout_ms: int | None = None) -> None:
        await self._handle.scroll_into_view_if_needed(timeout=timeout_ms)

    async def focus(self) -> None:
        await self._handle.focus()

    async def wait_for_state(self, state: ElementState, *, timeout_ms: int) -> None:
        try:
            await self._handle.wait_for_element_state(state, timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            raise WaitTimeoutError(f"element state {state!r}", timeout_ms) from exc

    async def get_attribute(self, name: str) -> str | None:
        return await self._handle.get_attribute(name)

    async def tag_name(self) -> str:
        return await self._handle.evaluate("(el) => el.tagName.toLowerCase()")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self._handle.evaluate(expression, arg)

    async def dispose(self) -> None:
        await self._handle.dispose()


class PlaywrightDriver(BrowserDriver):
    """``BrowserDriver`` over a single Playwright ``Page``.

    Strategy kinds map onto Playwright locators. ``role`` values may carry an
    accessible name after a colon (``button:Submit``).
    """

    def __init__(self, page: Page) -> None:
        self.page = page

    def _locator(self, kind: StrategyKind, value: str) -> Locator:
        page = self.page
        if kind in (StrategyKind.CSS, StrategyKind.ATTRIBUTE):
            return page.locator(value)
        if kind == StrategyKind.XPATH:
            return page.locator(f"xpath={value}")
        if kind == StrategyKind.TEXT_EXACT:
            return page.get_by_text(value, exact=True)
        if kind == StrategyKind.TEXT_PARTIAL:
            return page.get_by_text(value, exact=False)
        if kind == StrategyKind.ROLE:
            role, _, name = value.partition(":")
            if name:
                return page.get_by_role(role.strip(), name=name.strip())  # type: ignore[arg-type]
            return page.get_by_role(role.strip())  # type: ignore[arg-type]
        if kind == StrategyKind.LABEL:
            return page.get_by_label(value)
        if kind == StrategyKind.PLACEHOLDER:
            return page.get_by_placeholder(value)
        if kind == StrategyKind.TESTID:
            return page.get_by_test_id(value)
        raise ValueError(f"Unsupported strategy kind: {kind}")

    async def query(self, kind: StrategyKind, value: str, *, timeout_ms: int) -> ElementHandle | None:
        locator = self._locator(kind, value).first
        try:
            handle = await locator.element_handle(timeout=timeout_ms)
        except PlaywrightTimeout:
            return None
        return PlaywrightElement(handle)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if arg is None:
            return await self.page.evaluate(expression)
        return await self.page.evaluate(expression, arg)

    async def navigate(
        self,
        url: str,
        *,
        wait_until: LoadState = "domcontentloaded",
        timeout_ms: int = 30_000,
    ) -> None:
        try:
            await resilient_goto(self.page, url, timeout_ms=timeout_ms, wait_until=wait_until)
        except PlaywrightTimeout as exc:
            raise WaitTimeoutError(f"navigation to {url}", timeout_ms) from exc

    async def set_content(self, html: str, *, timeout_ms: int = 10_000) -> None:
        await self.page.set_content(html, timeout=timeout_ms)

    def current_url(self) -> str:
        return self.page.url

    def viewport_size(self) -> Viewport | None:
        size = self.page.viewport_size
        if not size:
            return None
        return Viewport(width=size["width"], height=size["height"])

    async def screenshot(self, *, full_page: bool = False) -> bytes:
        return await self.page.screenshot(full_page=full_page)

    async def wait_for_load_state(self, state: LoadState, *, timeout_ms: int) -> None:
        try:
            await self.page.wait_for_load_state(state, timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            raise WaitTimeoutError(f"load state {state!r}", timeout_ms) from exc

    def on_event(self, kind: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        self.page.on(kind, handler)

        def _unsubscribe() -> None:
            try:
                self.page.remove_listener(kind, handler)
            except Exception:
                logger.debug("Listener for %s already removed", kind)

        return _unsubscribe

    async def video_path(self) -> str | None:
        video = self.page.video
        if video is None:
            return None
        return str(await video.path())
