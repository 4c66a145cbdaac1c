"""Browser driver abstraction and its Playwright implementation."""

from waymark.browser.driver import BoundingBox, BrowserDriver, ElementHandle, Viewport

__all__ = ["BoundingBox", "BrowserDriver", "ElementHandle", "Viewport"]
