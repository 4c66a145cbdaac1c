"""Journey executor: run declarative step sequences against one page.

Steps run strictly in order; a step never starts before the previous one
(including its post-step work) has finished. Each step kind has exactly one
handler in ``_HANDLERS``, and the module refuses to import if a
``StepAction`` member has none.

Per-step failure policy:

* ``continue``: record the error and move on.
* ``retry``: re-run the step up to ``retryCount`` more times with linear
  backoff; if every attempt fails, abort like ``fail``.
* ``fail`` (default): record the error, call ``on_error`` and stop.

A failed step never raises out of :meth:`JourneyExecutor.run_journey`;
callers inspect ``JourneyResult.success`` and ``JourneyResult.errors``.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable
from urllib.parse import urljoin, urlsplit

from waymark.browser.navigation import spa_navigate
from waymark.exceptions import ActionError
from waymark.journey.validation import parse_journey
from waymark.models.journey import (
    ErrorPolicy,
    JourneyDefinition,
    JourneyResult,
    JourneyStep,
    StepAction,
    StepError,
    parse_duration,
)
from waymark.models.locator import LocatorSpec
from waymark.models.state import PageState

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver
    from waymark.journey.forms import FormOperations
    from waymark.locator.resolver import SelectorResolver
    from waymark.settings.config import JourneySettings
    from waymark.stability.coordinator import StabilityCoordinator

logger = logging.getLogger(__name__)

StepCallback = Callable[[JourneyStep, Any], None]
ErrorCallback = Callable[[Exception, JourneyStep], None]


@dataclass
class _RunContext:
    capture_screenshots: bool = False


class JourneyExecutor:
    """Interpret journeys using one page's resolver, coordinator and forms."""

    def __init__(
        self,
        driver: BrowserDriver,
        resolver: SelectorResolver,
        coordinator: StabilityCoordinator,
        forms: FormOperations,
        settings: JourneySettings | None = None,
    ) -> None:
        if settings is None:
            from waymark.settings import get_settings

            settings = get_settings().journey
        self.driver = driver
        self.resolver = resolver
        self.coordinator = coordinator
        self.forms = forms
        self.settings = settings

    async def run_journey(
        self,
        definition: JourneyDefinition | dict[str, Any] | list[Any] | str,
        *,
        record_video: bool = False,
        on_step_complete: StepCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> JourneyResult:
        """Execute every step of *definition* in order.

        Args:
            definition: A ``JourneyDefinition`` or any raw form accepted by
                :func:`~waymark.journey.validation.parse_journey`.
            record_video: Report the recording path once the run ends. The
                recording itself is set up with the browser context.
            on_step_complete: Called after each successful step with the step
                and its payload (base64 PNG for ``screenshot`` steps, else
                ``None``). Screenshots are only captured when this is set.
            on_error: Called with the error and step when a step failure
                stops the run.

        Returns:
            The run's ``JourneyResult``.

        Raises:
            JourneyValidationError: If the definition is invalid. Raised
                before the page is touched.
        """
        journey = parse_journey(definition)
        ctx = _RunContext(capture_screenshots=on_step_complete is not None)

        timings: dict[str, float] = {}
        errors: list[StepError] = []
        skipped: list[str] = []
        screenshots: list[str] = []
        completed = 0

        if record_video:
            logger.info("Video recording enabled for journey %s", journey.name)

        start_time = time.monotonic()
        deadline = start_time + journey.max_duration_ms / 1000 if journey.max_duration_ms else None
        total = len(journey.steps)

        for idx, step in enumerate(journey.steps):
            if deadline is not None and time.monotonic() >= deadline:
                message = f"Journey time budget of {journey.max_duration_ms}ms exceeded before step {step.id}"
                logger.warning("Journey %s: %s", journey.name, message)
                errors.append(
                    StepError(step_id=step.id, action=step.action.value, message=message, error_type="WaitTimeoutError")
                )
                break

            if step.condition and step.action not in (StepAction.WAIT, StepAction.ASSERT):
                if not await self._condition_holds(step.condition):
                    logger.info("Journey %s: skipping step %s (condition not met)", journey.name, step.id)
                    skipped.append(step.id)
                    continue

            step_start = time.monotonic()
            payload, error, attempts = await self._execute_step(step, ctx)
            timings[step.id] = round((time.monotonic() - step_start) * 1000, 3)

            if error is None:
                completed += 1
                if on_step_complete is not None:
                    if payload is not None:
                        screenshots.append(payload)
                    on_step_complete(step, payload)
                continue

            logger.warning(
                "Journey %s: step %d/%d (%s %s) failed after %d attempt(s): %s",
                journey.name,
                idx + 1,
                total,
                step.action.value,
                step.id,
                attempts,
                error,
            )
            errors.append(
                StepError(
                    step_id=step.id,
                    action=step.action.value,
                    message=str(error),
                    error_type=type(error).__name__,
                    attempts=attempts,
                )
            )
            if step.on_error == ErrorPolicy.CONTINUE:
                continue
            if on_error is not None:
                on_error(error, step)
            break

        video_path = await self._video_path() if record_video else None
        duration_ms = (time.monotonic() - start_time) * 1000
        result = JourneyResult(
            name=journey.name,
            success=not errors,
            per_step_timings_ms=timings,
            errors=errors,
            completed_step_count=completed,
            skipped_steps=skipped,
            screenshots=screenshots,
            video_path=video_path,
            duration_ms=round(duration_ms, 3),
        )
        logger.info(
            "Journey %s: %s (%d/%d steps in %.0fms)",
            journey.name,
            "SUCCESS" if result.success else "FAILED",
            completed,
            total,
            duration_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    async def _execute_step(self, step: JourneyStep, ctx: _RunContext) -> tuple[Any, Exception | None, int]:
        """Run one step, honouring the retry policy.

        Returns:
            ``(payload, error, attempts)``; ``error`` is ``None`` on success.
        """
        max_attempts = 1
        if step.on_error == ErrorPolicy.RETRY:
            max_attempts += step.retry_count or 0

        handler = _HANDLERS[step.action]
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                return await handler(self, step, ctx), None, attempt
            except Exception as exc:
                last_error = exc
                logger.debug("Step %s attempt %d/%d error: %s", step.id, attempt, max_attempts, exc)
            if attempt < max_attempts:
                await asyncio.sleep(self.settings.retry_backoff_ms * attempt / 1000)
        return None, last_error, max_attempts

    async def _condition_holds(self, condition: str) -> bool:
        try:
            await self.coordinator.wait_for_condition(condition, self.settings.step_condition_timeout_ms)
        except Exception as exc:
            logger.debug("Step condition %r not met: %s", condition, exc)
            return False
        return True

    async def _video_path(self) -> str | None:
        try:
            path = await self.driver.video_path()
        except Exception as exc:
            logger.warning("Failed to get video file path: %s", exc)
            return None
        if path:
            logger.info("Video recorded: %s", path)
        else:
            logger.info("Video recording not available for this session")
        return path

    def _interaction_spec(self, step: JourneyStep) -> LocatorSpec:
        return LocatorSpec(
            selector=step.selector or "",
            timeout_ms=step.timeout_ms or self.settings.interaction_timeout_ms,
            visibility_check=True,
            retry_count=0,
        )


# ----------------------------------------------------------------------
# Handlers, one per StepAction
# ----------------------------------------------------------------------


def _same_origin_path(current_url: str, target: str) -> tuple[str, str | None]:
    """Return ``(absolute_target, spa_path)``; ``spa_path`` is ``None`` for cross-origin targets."""
    if target.startswith("data:"):
        return target, None
    try:
        absolute = urljoin(current_url, target) if current_url else target
        current = urlsplit(current_url)
        resolved = urlsplit(absolute)
    except ValueError:
        return target, None
    if current.scheme not in ("http", "https") or (current.scheme, current.netloc) != (resolved.scheme, resolved.netloc):
        return absolute, None
    path = resolved.path or "/"
    if resolved.query:
        path += f"?{resolved.query}"
    if resolved.fragment:
        path += f"#{resolved.fragment}"
    return absolute, path


async def _navigate(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    driver = executor.driver
    coordinator = executor.coordinator
    timeout_ms = step.timeout_ms or executor.settings.navigate_timeout_ms
    target, spa_path = _same_origin_path(driver.current_url(), step.value or "")

    if coordinator.state == PageState.ERROR:
        logger.info("Navigating to %s clears the previous error state", target)
        coordinator.reset_state()
    coordinator.mark_navigating(f"navigate to {target}")
    try:
        if spa_path is not None:
            try:
                await spa_navigate(driver, spa_path, timeout_ms=timeout_ms)
            except Exception as exc:
                logger.warning("SPA navigation to %s failed, falling back to page navigation: %s", spa_path, exc)
                await driver.navigate(target, wait_until="domcontentloaded", timeout_ms=timeout_ms)
        else:
            await driver.navigate(target, wait_until="domcontentloaded", timeout_ms=timeout_ms)
    except Exception as exc:
        coordinator.mark_error(f"navigation failed: {exc}")
        raise
    coordinator.mark_navigation_complete()
    logger.info("Navigated to %s", target)


async def _click(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    async with executor.resolver.acquire(executor._interaction_spec(step)) as handle:
        await handle.click(timeout_ms=executor.settings.handle_action_timeout_ms)


async def _type(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    async with executor.resolver.acquire(executor._interaction_spec(step)) as handle:
        await handle.fill(step.value or "", timeout_ms=executor.settings.handle_action_timeout_ms)


async def _wait(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    if step.condition:
        timeout_ms = step.timeout_ms or executor.settings.wait_condition_timeout_ms
        await executor.coordinator.wait_for_condition(step.condition, timeout_ms)
        return
    duration_ms = parse_duration(step.value or "")
    if duration_ms is None:
        raise ActionError(f"Wait step requires a condition or a duration, got {step.value!r}")
    await asyncio.sleep(duration_ms / 1000)


async def _assert(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    if not await executor.driver.evaluate(step.condition or ""):
        raise ActionError(f"Assertion failed: {step.condition}")


async def _screenshot(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> str | None:
    if not ctx.capture_screenshots:
        return None
    png = await executor.driver.screenshot()
    return base64.b64encode(png).decode("ascii")


async def _fill_form(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    selector = step.selector or ""
    await executor.forms.wait_for_form(selector, step.timeout_ms)
    result = await executor.forms.fill_form(selector, step.form_data or {})
    if not result.success:
        raise ActionError(f"Form fill failed: {', '.join(result.errors)}")


async def _submit_form(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    selector = step.selector or ""
    await executor.forms.wait_for_form(selector, step.timeout_ms)
    await executor.forms.submit_form(selector, step.submit_selector, step.timeout_ms)
    await executor.forms.wait_for_submission(step.timeout_ms)


async def _wait_for_element(executor: JourneyExecutor, step: JourneyStep, ctx: _RunContext) -> None:
    spec = LocatorSpec(
        selector=step.selector or "",
        timeout_ms=step.timeout_ms or executor.settings.element_timeout_ms,
    )
    async with executor.resolver.acquire(spec):
        pass


StepHandler = Callable[[JourneyExecutor, JourneyStep, _RunContext], Awaitable[Any]]

_HANDLERS: dict[StepAction, StepHandler] = {
    StepAction.NAVIGATE: _navigate,
    StepAction.CLICK: _click,
    StepAction.TYPE: _type,
    StepAction.WAIT: _wait,
    StepAction.ASSERT: _assert,
    StepAction.SCREENSHOT: _screenshot,
    StepAction.FILL_FORM: _fill_form,
    StepAction.SUBMIT_FORM: _submit_form,
    StepAction.WAIT_FOR_ELEMENT: _wait_for_element,
}

_unhandled = set(StepAction) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No journey step handler for: {sorted(a.value for a in _unhandled)}")
