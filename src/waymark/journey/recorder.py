"""Capture live interactions as a replayable journey.

The recorder is driven by explicit :meth:`JourneyRecorder.record_interaction`
calls plus the page's own navigations. Stopping a recording converts the
captured steps into a :class:`~waymark.models.journey.JourneyDefinition`
that :class:`~waymark.journey.executor.JourneyExecutor` can run as-is.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from waymark.browser.driver import EVENT_FRAME_NAVIGATED
from waymark.exceptions import RecordingError
from waymark.journey.optimizer import coalesce_waits
from waymark.models.journey import JourneyDefinition, JourneyStep, StepAction, parse_duration
from waymark.models.recording import (
    RecordedStep,
    RecordingOptimization,
    RecordingOptions,
    RecordingResult,
    RecordingSession,
    RecordingStatistics,
    RecordingStatus,
    SelectorSuggestion,
)

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver, ElementHandle

logger = logging.getLogger(__name__)

ELEMENT_SUMMARY_JS = """(el) => {
    const parts = [];
    for (let node = el; node && node.nodeType === 1; node = node.parentElement) {
        let index = 1;
        for (let sib = node.previousElementSibling; sib; sib = sib.previousElementSibling) {
            if (sib.tagName === node.tagName) index++;
        }
        parts.unshift(`${node.tagName.toLowerCase()}[${index}]`);
    }
    const attr = (name) => el.getAttribute(name);
    return {
        tag: el.tagName.toLowerCase(),
        id: el.id || null,
        classes: Array.from(el.classList),
        testId: attr('data-testid'),
        ariaLabel: attr('aria-label'),
        ariaLabelledBy: attr('aria-labelledby'),
        title: attr('title'),
        alt: attr('alt'),
        placeholder: attr('placeholder'),
        text: (el.innerText || el.textContent || '').trim().slice(0, 100),
        xpath: '/' + parts.join('/'),
    };
}"""

_ELEMENT_ACTIONS = frozenset(
    {StepAction.CLICK, StepAction.TYPE, StepAction.SUBMIT_FORM, StepAction.WAIT_FOR_ELEMENT}
)
_RECORDABLE_ACTIONS = _ELEMENT_ACTIONS | {StepAction.NAVIGATE, StepAction.WAIT, StepAction.SCREENSHOT}

_CSS_IDENT = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")

# (summary key, attribute name, description)
_ACCESSIBLE_ATTRIBUTES = (
    ("ariaLabel", "aria-label", "ARIA label"),
    ("ariaLabelledBy", "aria-labelledby", "ARIA labelled-by"),
    ("title", "title", "title attribute"),
    ("alt", "alt", "alt text"),
    ("placeholder", "placeholder", "placeholder"),
)


def _attr_selector(name: str, value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'[{name}="{escaped}"]'


def generate_selector_suggestions(summary: dict[str, Any]) -> list[SelectorSuggestion]:
    """Rank candidate selectors for an element summary, most robust first.

    Ids score highest, then test ids, class combinations, accessible
    attributes, the element's XPath, and finally its visible text.
    """
    suggestions: list[SelectorSuggestion] = []
    tag = summary.get("tag") or ""

    element_id = summary.get("id")
    if element_id:
        selector = f"#{element_id}" if _CSS_IDENT.match(element_id) else _attr_selector("id", element_id)
        suggestions.append(SelectorSuggestion(selector=selector, score=100, kind="id", description="Element id"))

    test_id = summary.get("testId")
    if test_id:
        suggestions.append(
            SelectorSuggestion(
                selector=_attr_selector("data-testid", test_id), score=90, kind="test-id", description="Test id"
            )
        )

    classes = [c for c in summary.get("classes") or [] if _CSS_IDENT.match(c)]
    if classes:
        suggestions.append(
            SelectorSuggestion(
                selector=tag + "".join(f".{c}" for c in classes),
                score=min(80 + 5 * len(classes), 95),
                kind="class",
                description=f"{len(classes)} class(es)",
            )
        )

    for key, attribute, description in _ACCESSIBLE_ATTRIBUTES:
        value = summary.get(key)
        if value:
            suggestions.append(
                SelectorSuggestion(
                    selector=f"{tag}{_attr_selector(attribute, value)}",
                    score=70,
                    kind="attribute",
                    description=description,
                )
            )

    xpath = summary.get("xpath")
    if xpath:
        suggestions.append(SelectorSuggestion(selector=xpath, score=60, kind="xpath", description="Document position"))

    text = (summary.get("text") or "").strip()
    if text and len(text) <= 50:
        suggestions.append(SelectorSuggestion(selector=f'"{text}"', score=40, kind="text", description="Visible text"))

    suggestions.sort(key=lambda s: s.score, reverse=True)
    return suggestions


class JourneyRecorder:
    """Record one journey at a time on a single page.

    Args:
        driver: Driver bound to the page being recorded.
    """

    def __init__(self, driver: BrowserDriver) -> None:
        self.driver = driver
        self._session: RecordingSession | None = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._started = 0.0
        self._paused_at: float | None = None
        self._paused_total = 0.0
        self._last_event_at: float | None = None
        self._last_url = ""
        self._total_events = 0
        self._filtered = 0

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    def start_recording(self, options: RecordingOptions | None = None) -> RecordingSession:
        """Begin a new recording session.

        Raises:
            RecordingError: If a recording is already in progress.
        """
        if self._session is not None:
            raise RecordingError(f"Recording {self._session.session_id} is already in progress")

        options = options or RecordingOptions()
        self._last_url = self.driver.current_url()
        self._session = RecordingSession(session_id=uuid.uuid4().hex, options=options, start_url=self._last_url)
        self._started = time.monotonic()
        self._paused_at = None
        self._paused_total = 0.0
        self._last_event_at = None
        self._total_events = 0
        self._filtered = 0
        self._unsubscribers = [self.driver.on_event(EVENT_FRAME_NAVIGATED, self._on_navigated)]
        logger.info("Started recording %s (%s) at %s", self._session.session_id, options.name, self._last_url)
        return self._session

    def pause_recording(self) -> None:
        session = self._require_session()
        if session.is_paused:
            raise RecordingError("Recording is already paused")
        session.is_paused = True
        self._paused_at = time.monotonic()
        logger.info("Paused recording %s", session.session_id)

    def resume_recording(self) -> None:
        session = self._require_session()
        if not session.is_paused:
            raise RecordingError("Recording is not paused")
        session.is_paused = False
        if self._paused_at is not None:
            self._paused_total += time.monotonic() - self._paused_at
            self._paused_at = None
        # navigations made while paused are not recorded
        self._last_url = self.driver.current_url()
        logger.info("Resumed recording %s", session.session_id)

    def status(self) -> RecordingStatus:
        session = self._session
        if session is None:
            return RecordingStatus(current_url=self.driver.current_url())
        return RecordingStatus(
            session_id=session.session_id,
            is_recording=True,
            is_paused=session.is_paused,
            current_url=self.driver.current_url(),
            steps_recorded=len(session.steps),
            recording_duration_ms=self._active_ms(),
            can_pause=not session.is_paused,
            can_resume=session.is_paused,
            can_stop=True,
        )

    async def suggest_selectors(self, element: ElementHandle) -> list[SelectorSuggestion]:
        """Rank selectors for a live element; empty if it cannot be inspected."""
        return generate_selector_suggestions(await self._summarize(element))

    async def record_interaction(
        self,
        action: StepAction | str,
        *,
        selector: str | None = None,
        value: str | None = None,
        element: ElementHandle | None = None,
    ) -> RecordedStep | None:
        """Capture one interaction; returns the step, or ``None`` if it was filtered.

        With *element* and ``autoSelectors`` on, the best suggestion stands in
        for a missing *selector* and every suggestion is kept on the step.

        Raises:
            RecordingError: If no recording is active or the interaction
                cannot be replayed.
        """
        session = self._require_session()
        action = StepAction(action)
        if action not in _RECORDABLE_ACTIONS:
            raise RecordingError(f"Action {action.value!r} cannot be recorded")
        self._total_events += 1

        if session.is_paused or self._excluded(session.options, action, selector):
            self._filtered += 1
            return None

        now = time.monotonic()
        min_delay_s = session.options.min_interaction_delay_ms / 1000
        if self._last_event_at is not None and min_delay_s and now - self._last_event_at < min_delay_s:
            self._filtered += 1
            return None

        suggestions: list[SelectorSuggestion] = []
        element_info: dict[str, Any] = {}
        if element is not None and session.options.auto_selectors:
            summary = await self._summarize(element)
            suggestions = generate_selector_suggestions(summary)
            element_info = {
                "element_tag": summary.get("tag"),
                "element_id": summary.get("id"),
                "element_text": summary.get("text") or None,
            }
            if selector is None and suggestions:
                selector = suggestions[0].selector

        if action in _ELEMENT_ACTIONS and not selector:
            raise RecordingError(f"{action.value} interaction needs a selector or an element")
        if action == StepAction.NAVIGATE and not value:
            raise RecordingError("navigate interaction needs a URL")
        if action == StepAction.WAIT and parse_duration(value) is None:
            raise RecordingError(f"wait interaction needs a duration in milliseconds, got {value!r}")
        if action == StepAction.TYPE and value is None:
            value = ""

        step = self._append(action, selector=selector, value=value, selector_options=suggestions, **element_info)
        self._last_event_at = now
        if action == StepAction.NAVIGATE:
            self._last_url = value or self._last_url
        return step

    async def stop_recording(self) -> RecordingResult:
        """Finish the session and convert it into a journey.

        Raises:
            RecordingError: If no recording is active.
        """
        session = self._require_session()
        self._unsubscribe()
        if session.is_paused and self._paused_at is not None:
            self._paused_total += time.monotonic() - self._paused_at
            self._paused_at = None
        duration_ms = self._active_ms()
        session.ended_at = datetime.now(timezone.utc)
        session.is_paused = False

        deduped = _drop_repeats(session.steps)
        steps = [_to_journey_step(step) for step in deduped]
        merged = coalesce_waits(steps)
        journey = JourneyDefinition(name=session.options.name, steps=merged)

        video_path = await self.driver.video_path() if session.options.record_video else None
        statistics = RecordingStatistics(
            total_events=self._total_events,
            events_filtered=self._filtered,
            steps_generated=len(merged),
            action_counts=dict(Counter(step.action.value for step in merged)),
            duration_ms=duration_ms,
        )
        optimization = RecordingOptimization(
            duplicates_removed=len(session.steps) - len(deduped),
            waits_merged=len(steps) - len(merged),
        )
        self._session = None
        logger.info(
            "Stopped recording %s: %d step(s) from %d event(s) in %.0fms",
            session.session_id,
            len(merged),
            self._total_events,
            duration_ms,
        )
        return RecordingResult(
            session=session,
            journey=journey,
            statistics=statistics,
            optimization=optimization,
            video_path=video_path,
        )

    def close(self) -> None:
        """Drop the page subscriptions of an unfinished recording."""
        self._unsubscribe()
        self._session = None

    def _unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _require_session(self) -> RecordingSession:
        if self._session is None:
            raise RecordingError("No recording in progress")
        return self._session

    def _active_ms(self) -> float:
        paused = self._paused_total
        if self._paused_at is not None:
            paused += time.monotonic() - self._paused_at
        return max(0.0, (time.monotonic() - self._started - paused) * 1000)

    @staticmethod
    def _excluded(options: RecordingOptions, action: StepAction, selector: str | None) -> bool:
        if action in options.exclude_actions:
            return True
        return bool(selector) and any(pattern in selector for pattern in options.exclude_selectors)

    async def _summarize(self, element: ElementHandle) -> dict[str, Any]:
        try:
            summary = await element.evaluate(ELEMENT_SUMMARY_JS)
        except Exception as exc:
            logger.debug("Could not summarize element: %s", exc)
            return {}
        return summary if isinstance(summary, dict) else {}

    def _append(self, action: StepAction, **fields: Any) -> RecordedStep:
        session = self._require_session()
        step = RecordedStep(
            id=f"step_{len(session.steps) + 1}",
            action=action,
            timestamp=datetime.now(timezone.utc),
            **fields,
        )
        session.steps.append(step)
        logger.debug("Recorded %s %s", action.value, fields.get("selector") or fields.get("value") or "")
        return step

    def _on_navigated(self, _frame: Any) -> None:
        session = self._session
        if session is None or session.is_paused:
            return
        url = self.driver.current_url()
        if not url or url == self._last_url:
            return
        self._total_events += 1
        if StepAction.NAVIGATE in session.options.exclude_actions:
            self._filtered += 1
        else:
            self._append(StepAction.NAVIGATE, value=url)
        self._last_url = url


def _drop_repeats(steps: list[RecordedStep]) -> list[RecordedStep]:
    """Collapse consecutive identical interactions; typing is always kept."""
    kept: list[RecordedStep] = []
    for step in steps:
        previous = kept[-1] if kept else None
        if (
            previous is not None
            and step.action != StepAction.TYPE
            and (step.action, step.selector, step.value) == (previous.action, previous.selector, previous.value)
        ):
            continue
        kept.append(step)
    return kept


def _describe(step: RecordedStep) -> str:
    if step.action == StepAction.NAVIGATE:
        return f"Navigate to {step.value}"
    if step.action == StepAction.WAIT:
        return f"Wait {step.value}ms"
    if step.action == StepAction.SCREENSHOT:
        return "Take screenshot"
    target = step.element_text or step.selector
    if step.action == StepAction.TYPE:
        return f"Type into {target}"
    return f"{step.action.value.replace('_', ' ').capitalize()} {target}"


def _to_journey_step(step: RecordedStep) -> JourneyStep:
    return JourneyStep(
        id=step.id,
        action=step.action,
        selector=step.selector,
        value=step.value,
        description=_describe(step),
    )
