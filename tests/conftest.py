"""Waymark test configuration — shared fixtures and in-memory browser fakes."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Any, Callable

import pytest

from waymark.browser.driver import BoundingBox, BrowserDriver, ElementHandle, Viewport
from waymark.exceptions import WaitTimeoutError
from waymark.models.locator import StrategyKind
from waymark.stability.signals import ANIMATIONS_RUNNING_JS, DOM_MUTATION_COUNT_JS, DOM_READY_JS

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"
PAGES_DIR = FIXTURES_DIR / "pages"


# ---------------------------------------------------------------------------
# Fake driver
# ---------------------------------------------------------------------------


class FakeElement(ElementHandle):
    """Scriptable element handle that records every interaction."""

    def __init__(
        self,
        *,
        box: BoundingBox | None = BoundingBox(10, 10, 100, 20),
        box_after_scroll: BoundingBox | None = None,
        attributes: dict[str, str] | None = None,
        tag: str = "input",
        visible: bool = True,
        focus_error: Exception | None = None,
        click_error: Exception | None = None,
        results: dict[str, Any] | None = None,
    ) -> None:
        self.box = box
        self.box_after_scroll = box_after_scroll
        self.attributes = attributes or {}
        self.tag = tag
        self.visible = visible
        self.focus_error = focus_error
        self.click_error = click_error
        self.results = results or {}
        self.clicks = 0
        self.filled: list[str] = []
        self.typed: list[tuple[str, int]] = []
        self.files: list[list[str]] = []
        self.checked: bool | None = None
        self.selected: list[str] = []
        self.scrolls = 0
        self.focused = 0
        self.disposed = 0

    async def click(self, *, timeout_ms: int | None = None) -> None:
        if self.click_error is not None:
            raise self.click_error
        self.clicks += 1

    async def fill(self, value: str, *, timeout_ms: int | None = None) -> None:
        self.filled.append(value)

    async def type(self, text: str, *, delay_ms: int = 0, timeout_ms: int | None = None) -> None:
        self.typed.append((text, delay_ms))

    async def set_input_files(self, paths: list[str], *, timeout_ms: int | None = None) -> None:
        self.files.append(list(paths))

    async def check(self) -> None:
        self.checked = True

    async def uncheck(self) -> None:
        self.checked = False

    async def select_option(self, value: str) -> None:
        self.selected.append(value)

    async def bounding_box(self) -> BoundingBox | None:
        return self.box

    async def scroll_into_view(self, *, timeout_ms: int | None = None) -> None:
        self.scrolls += 1
        if self.box_after_scroll is not None:
            self.box = self.box_after_scroll

    async def focus(self) -> None:
        if self.focus_error is not None:
            raise self.focus_error
        self.focused += 1

    async def wait_for_state(self, state: str, *, timeout_ms: int) -> None:
        if state == "visible" and not self.visible:
            raise WaitTimeoutError(f"element state {state!r}", timeout_ms)

    async def get_attribute(self, name: str) -> str | None:
        return self.attributes.get(name)

    async def tag_name(self) -> str:
        return self.tag

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        result = self.results.get(expression)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(arg)
        return result

    async def dispose(self) -> None:
        self.disposed += 1


class FakeDriver(BrowserDriver):
    """In-memory page: elements are looked up by exact selector string.

    Queries never wait; a selector either resolves immediately or not at all.
    ``evaluate`` answers the built-in stability probes with settled values and
    everything else from ``results`` (values, callables, or exceptions).
    """

    def __init__(self, url: str = "about:blank") -> None:
        self.url = url
        self.elements: dict[tuple[StrategyKind | None, str], FakeElement] = {}
        self.query_errors: dict[str, Exception] = {}
        self.queries: list[tuple[StrategyKind, str, int]] = []
        self.results: dict[str, Any] = {
            DOM_MUTATION_COUNT_JS: 0,
            ANIMATIONS_RUNNING_JS: False,
            DOM_READY_JS: True,
            "true": True,
            "false": False,
        }
        self.evaluations: list[tuple[str, Any]] = []
        self.navigations: list[str] = []
        self.navigation_error: Exception | None = None
        self.contents: list[str] = []
        self.load_states: list[str] = []
        self.load_state_error: Exception | None = None
        self.listeners: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self.viewport: Viewport | None = Viewport(1280, 720)
        self.screenshot_bytes = b"\x89PNG-fake"
        self.video: str | None = None

    def add_element(
        self,
        selector: str,
        element: FakeElement | None = None,
        kind: StrategyKind | None = None,
    ) -> FakeElement:
        element = element or FakeElement()
        self.elements[(kind, selector)] = element
        return element

    def emit(self, kind: str, payload: Any = None) -> None:
        for handler in list(self.listeners[kind]):
            handler(payload)

    async def query(self, kind: StrategyKind, value: str, *, timeout_ms: int) -> ElementHandle | None:
        self.queries.append((kind, value, timeout_ms))
        if value in self.query_errors:
            raise self.query_errors[value]
        return self.elements.get((kind, value)) or self.elements.get((None, value))

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.evaluations.append((expression, arg))
        result = self.results.get(expression)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(arg)
        return result

    async def navigate(self, url: str, *, wait_until: str = "domcontentloaded", timeout_ms: int = 30_000) -> None:
        self.navigations.append(url)
        if self.navigation_error is not None:
            raise self.navigation_error
        self.url = url

    async def set_content(self, html: str, *, timeout_ms: int = 10_000) -> None:
        self.contents.append(html)

    def current_url(self) -> str:
        return self.url

    def viewport_size(self) -> Viewport | None:
        return self.viewport

    async def screenshot(self, *, full_page: bool = False) -> bytes:
        return self.screenshot_bytes

    async def wait_for_load_state(self, state: str, *, timeout_ms: int) -> None:
        self.load_states.append(state)
        if self.load_state_error is not None:
            raise self.load_state_error

    def on_event(self, kind: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        self.listeners[kind].append(handler)
        return lambda: self.listeners[kind].remove(handler)

    async def video_path(self) -> str | None:
        return self.video


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from waymark.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def fast_settings():
    """Settings with millisecond-scale timings so waits finish quickly."""
    from waymark.settings.config import (
        JourneySettings,
        LocatorSettings,
        Settings,
        StabilitySettings,
    )

    return Settings(
        locator=LocatorSettings(
            default_timeout_ms=200,
            retry_interval_ms=20,
            min_strategy_timeout_ms=10,
            visibility_timeout_ms=50,
        ),
        stability=StabilitySettings(
            timeout_ms=500,
            poll_interval_ms=10,
            grace_ms=10,
            mutation_sample_ms=10,
            network_idle_ms=0,
            network_busy_cap_ms=200,
            action_stability_timeout_ms=300,
            max_retries=2,
            retry_delay_ms=5,
            post_check_delay_ms=5,
        ),
        journey=JourneySettings(
            interaction_timeout_ms=100,
            element_timeout_ms=100,
            navigate_timeout_ms=500,
            wait_condition_timeout_ms=100,
            step_condition_timeout_ms=50,
            handle_action_timeout_ms=100,
            form_timeout_ms=100,
            submit_timeout_ms=100,
            retry_backoff_ms=5,
        ),
    )


# ---------------------------------------------------------------------------
# Core components
# ---------------------------------------------------------------------------


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture()
def resolver(driver: FakeDriver, fast_settings):
    from waymark.locator.resolver import SelectorResolver

    return SelectorResolver(driver, fast_settings.locator)


@pytest.fixture()
def coordinator(driver: FakeDriver, fast_settings):
    from waymark.stability.coordinator import StabilityCoordinator

    coord = StabilityCoordinator(driver, fast_settings.stability)
    yield coord
    coord.close()


@pytest.fixture()
def orchestrator(driver: FakeDriver, fast_settings):
    from waymark.orchestrator import Orchestrator

    orch = Orchestrator(driver, fast_settings)
    yield orch
    orch.close()


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that require a real browser")
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")
