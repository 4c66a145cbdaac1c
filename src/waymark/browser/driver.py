"""Abstract browser driver interface consumed by the Waymark core.

The resolver, stability coordinator and journey executor only ever talk to
a page through these two classes. ``PlaywrightDriver`` is the production
implementation; tests substitute in-memory fakes.

Implementations must raise ``WaitTimeoutError`` when a bounded wait runs out
of budget so callers see one timeout type regardless of the backend.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Callable, Literal

from waymark.models.locator import StrategyKind

ElementState = Literal["visible", "hidden", "stable", "enabled", "disabled", "editable"]
LoadState = Literal["domcontentloaded", "load", "networkidle"]

# Event kinds the core subscribes to via ``BrowserDriver.on_event``.
EVENT_REQUEST = "request"
EVENT_REQUEST_FINISHED = "requestfinished"
EVENT_REQUEST_FAILED = "requestfailed"
EVENT_DOM_CONTENT_LOADED = "domcontentloaded"
EVENT_LOAD = "load"
EVENT_FRAME_NAVIGATED = "framenavigated"


@dataclass(frozen=True)
class BoundingBox:
    """Element position and size in CSS pixels, relative to the viewport."""

    x: float
    y: float
    width: float
    height: float

    def within(self, viewport: Viewport) -> bool:
        """Return True if the box lies entirely inside *viewport*."""
        return (
            self.x >= 0
            and self.y >= 0
            and self.x + self.width <= viewport.width
            and self.y + self.height <= viewport.height
        )


@dataclass(frozen=True)
class Viewport:
    """Viewport dimensions in CSS pixels."""

    width: int
    height: int


class ElementHandle(abc.ABC):
    """Opaque, caller-owned reference to one live page element.

    Every handle must be disposed exactly once; reading a handle after
    ``dispose()`` is undefined.
    """

    @abc.abstractmethod
    async def click(self, *, timeout_ms: int | None = None) -> None:
        """Click the element."""

    @abc.abstractmethod
    async def fill(self, value: str, *, timeout_ms: int | None = None) -> None:
        """Replace the element's value with *value*."""

    @abc.abstractmethod
    async def type(self, text: str, *, delay_ms: int = 0, timeout_ms: int | None = None) -> None:
        """Type *text* one key at a time, pausing *delay_ms* between keys."""

    @abc.abstractmethod
    async def set_input_files(self, paths: list[str], *, timeout_ms: int | None = None) -> None:
        """Attach local files to an ``<input type="file">``."""

    @abc.abstractmethod
    async def check(self) -> None:
        """Check a checkbox or radio input."""

    @abc.abstractmethod
    async def uncheck(self) -> None:
        """Uncheck a checkbox input."""

    @abc.abstractmethod
    async def select_option(self, value: str) -> None:
        """Select an ``<option>`` by value or label."""

    @abc.abstractmethod
    async def bounding_box(self) -> BoundingBox | None:
        """Return the element's box, or ``None`` if it is not rendered."""

    @abc.abstractmethod
    async def scroll_into_view(self, *, timeout_ms: int | None = None) -> None:
        """Scroll the element into the viewport if needed."""

    @abc.abstractmethod
    async def focus(self) -> None:
        """Focus the element."""

    @abc.abstractmethod
    async def wait_for_state(self, state: ElementState, *, timeout_ms: int) -> None:
        """Wait until the element reaches *state*."""

    @abc.abstractmethod
    async def get_attribute(self, name: str) -> str | None:
        """Return an attribute value, or ``None`` if absent."""

    @abc.abstractmethod
    async def tag_name(self) -> str:
        """Return the lower-case tag name."""

    @abc.abstractmethod
    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Evaluate a JavaScript function with the element as its first argument."""

    @abc.abstractmethod
    async def dispose(self) -> None:
        """Release the underlying reference."""


class BrowserDriver(abc.ABC):
    """Primitive operations on one live page."""

    @abc.abstractmethod
    async def query(self, kind: StrategyKind, value: str, *, timeout_ms: int) -> ElementHandle | None:
        """Wait up to *timeout_ms* for an element matching one strategy.

        Returns ``None`` when nothing matches in time. Malformed selectors may
        raise driver-specific errors.
        """

    @abc.abstractmethod
    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Evaluate a JavaScript expression or function in the page."""

    @abc.abstractmethod
    async def navigate(
        self,
        url: str,
        *,
        wait_until: LoadState = "domcontentloaded",
        timeout_ms: int = 30_000,
    ) -> None:
        """Perform a full, driver-level navigation to *url*."""

    @abc.abstractmethod
    async def set_content(self, html: str, *, timeout_ms: int = 10_000) -> None:
        """Replace the page's document with *html*."""

    @abc.abstractmethod
    def current_url(self) -> str:
        """Return the page's current URL."""

    @abc.abstractmethod
    def viewport_size(self) -> Viewport | None:
        """Return the viewport size, or ``None`` if unknown."""

    @abc.abstractmethod
    async def screenshot(self, *, full_page: bool = False) -> bytes:
        """Capture a PNG screenshot."""

    @abc.abstractmethod
    async def wait_for_load_state(self, state: LoadState, *, timeout_ms: int) -> None:
        """Wait until the page reaches a load state."""

    @abc.abstractmethod
    def on_event(self, kind: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Subscribe *handler* to a page event; returns an unsubscribe callable."""

    async def video_path(self) -> str | None:
        """Return the session recording path, if recording is active.

        The default implementation reports no recording.
        """
        return None
