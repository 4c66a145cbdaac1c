"""Waymark exception hierarchy."""

from __future__ import annotations


class WaymarkError(Exception):
    """Base exception for all Waymark errors."""


class ElementNotFoundError(WaymarkError):
    """Raised when every resolution strategy for a locator has been exhausted.

    Attributes:
        selector: The selector that could not be resolved.
        strategies: Names of the strategies that were tried, in order.
    """

    def __init__(self, selector: str, strategies: list[str] | None = None) -> None:
        self.selector = selector
        self.strategies = strategies or []
        tried = f" (tried: {', '.join(self.strategies)})" if self.strategies else ""
        super().__init__(f"Element not found: {selector!r}{tried}")


class WaitTimeoutError(WaymarkError):
    """Raised when a wait, stability, or navigation budget is exceeded.

    Attributes:
        what: Short description of what was being waited for.
        timeout_ms: The budget that was exceeded.
    """

    def __init__(self, what: str, timeout_ms: float) -> None:
        self.what = what
        self.timeout_ms = timeout_ms
        super().__init__(f"Timed out after {timeout_ms:.0f}ms waiting for {what}")


class JourneyValidationError(WaymarkError):
    """Raised when a journey definition is malformed.

    Attributes:
        errors: Individual validation messages.
        warnings: Non-fatal findings from the same validation pass.
    """

    def __init__(self, errors: list[str], warnings: list[str] | None = None) -> None:
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        summary = "; ".join(self.errors[:5])
        if len(self.errors) > 5:
            summary += f" (+{len(self.errors) - 5} more)"
        super().__init__(f"Invalid journey definition: {summary}")


class ActionError(WaymarkError):
    """Raised when a step handler cannot perform its action."""


class PageStateError(WaymarkError):
    """Raised when a coordinated action is attempted in a state that forbids it.

    Attributes:
        state: The page state value at the time of the attempt.
    """

    def __init__(self, state: str, message: str = "") -> None:
        self.state = state
        super().__init__(message or f"Page is not ready for actions (state={state})")


class NavigationError(WaymarkError):
    """Raised when navigation fails for a reason that retrying cannot fix.

    Attributes:
        url: The navigation target.
        reason: Short human-readable failure reason.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class SessionError(WaymarkError):
    """Raised for unknown or duplicate orchestrator session ids."""


class RecordingError(WaymarkError):
    """Raised when a recording control is used in the wrong recorder state."""
