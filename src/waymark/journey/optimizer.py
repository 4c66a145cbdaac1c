"""Pure journey optimizations."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from waymark.models.journey import (
    JourneyDefinition,
    JourneyStep,
    OptimizationResult,
    StepAction,
    format_duration,
    parse_duration,
)

logger = logging.getLogger(__name__)


def _duration_ms(step: JourneyStep) -> float | None:
    """Literal duration of a bare wait step, or ``None`` if it is not one."""
    if step.action != StepAction.WAIT or step.condition:
        return None
    return parse_duration(step.value or "0")


def coalesce_waits(steps: Sequence[JourneyStep]) -> list[JourneyStep]:
    """Merge each run of consecutive bare-duration waits into one wait.

    The merged step keeps the first wait's id and other fields; its value is
    the sum of the run's durations. Every other step is kept in order.
    """
    optimized: list[JourneyStep] = []
    for step in steps:
        duration = _duration_ms(step)
        previous = optimized[-1] if optimized else None
        previous_duration = _duration_ms(previous) if previous is not None else None
        if duration is not None and previous_duration is not None:
            optimized[-1] = previous.model_copy(update={"value": format_duration(previous_duration + duration)})
            continue
        optimized.append(step)
    return optimized


def optimize_journey_definition(
    definition: JourneyDefinition | Sequence[JourneyStep] | dict[str, Any] | str,
) -> OptimizationResult:
    """Return an optimized copy of a journey's steps.

    Accepts a ``JourneyDefinition``, a sequence of ``JourneyStep``, or any raw
    form accepted by :func:`~waymark.journey.validation.parse_journey`.
    Re-optimizing the output yields the same steps.

    Raises:
        JourneyValidationError: If a raw definition is invalid.
    """
    if isinstance(definition, JourneyDefinition):
        steps = list(definition.steps)
    elif isinstance(definition, (list, tuple)) and all(isinstance(s, JourneyStep) for s in definition):
        steps = list(definition)
    else:
        from waymark.journey.validation import parse_journey

        steps = list(parse_journey(definition).steps)

    optimized = coalesce_waits(steps)
    applied = len(steps) - len(optimized)
    if applied:
        logger.debug("Coalesced %d wait step(s)", applied)
    return OptimizationResult(
        original_step_count=len(steps),
        optimized_step_count=len(optimized),
        optimizations_applied=applied,
        optimized_steps=optimized,
        summary=f"Optimized journey: {len(steps)} → {len(optimized)} steps",
    )
