"""Browser lifecycle: launch Chromium and hand out a ``PlaywrightDriver``."""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import Any

from waymark.browser.playwright_driver import PlaywrightDriver
from waymark.settings.config import BrowserSettings

logger = logging.getLogger(__name__)


class BrowserSession:
    """Async context manager owning one browser, context and page.

    Usage::

        async with BrowserSession(settings.browser) as driver:
            orchestrator = Orchestrator(driver)
            ...
    """

    def __init__(
        self,
        settings: BrowserSettings | None = None,
        *,
        headless: bool | None = None,
        record_video: bool | None = None,
    ) -> None:
        if settings is None:
            from waymark.settings import get_settings

            settings = get_settings().browser
        self.settings = settings
        self.headless = settings.headless if headless is None else headless
        self.record_video = settings.record_video if record_video is None else record_video
        self._pw_cm: Any = None
        self._browser: Any = None
        self._context: Any = None
        self.driver: PlaywrightDriver | None = None

    def _launch_args(self) -> dict[str, Any]:
        args: dict[str, Any] = {"headless": self.headless}
        if not self.settings.sandbox:
            args["args"] = ["--no-sandbox"]
        return args

    def _context_args(self) -> dict[str, Any]:
        args: dict[str, Any] = {
            "viewport": {"width": self.settings.viewport_width, "height": self.settings.viewport_height},
        }
        if self.settings.user_agent:
            args["user_agent"] = self.settings.user_agent
        if self.record_video:
            video_dir = Path(self.settings.video_dir)
            video_dir.mkdir(parents=True, exist_ok=True)
            args["record_video_dir"] = str(video_dir)
        return args

    async def __aenter__(self) -> PlaywrightDriver:
        from playwright.async_api import async_playwright

        self._pw_cm = async_playwright()
        pw = await self._pw_cm.__aenter__()
        try:
            self._browser = await pw.chromium.launch(**self._launch_args())
            self._context = await self._browser.new_context(**self._context_args())
            page = await self._context.new_page()
            page.set_default_timeout(self.settings.timeout_ms)
        except BaseException:
            await self._shutdown()
            raise
        logger.info(
            "Browser session started (headless=%s, record_video=%s)",
            self.headless,
            self.record_video,
        )
        self.driver = PlaywrightDriver(page)
        return self.driver

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self._shutdown()

    async def _shutdown(self) -> None:
        # Closing the context flushes any video recording to disk.
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as exc:
                logger.warning("Failed to close browser context: %s", exc)
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                logger.warning("Failed to close browser: %s", exc)
            self._browser = None
        if self._pw_cm is not None:
            try:
                await self._pw_cm.__aexit__(None, None, None)
            except Exception as exc:
                logger.warning("Failed to stop Playwright: %s", exc)
            self._pw_cm = None
        self.driver = None
