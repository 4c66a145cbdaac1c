"""Journey definition validation and parsing.

Validation is pure: it inspects the raw definition without touching a
browser. It runs over plain dicts rather than models so that every problem
in a definition is reported at once, with step-level messages, instead of
stopping at the first pydantic error.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from pydantic import ValidationError

from waymark.exceptions import JourneyValidationError
from waymark.models.journey import ErrorPolicy, JourneyDefinition, StepAction, ValidationReport, parse_duration

logger = logging.getLogger(__name__)

_ACTIONS = {a.value for a in StepAction}
_POLICIES = {p.value for p in ErrorPolicy}


def _present(step: dict[str, Any], key: str) -> bool:
    value = step.get(key)
    return value is not None and value != ""


def _is_duration(value: Any) -> bool:
    return parse_duration(value) is not None


def _check_navigate(step: dict[str, Any]) -> list[str]:
    return [] if _present(step, "value") else ["navigate action requires 'value' (URL)"]


def _check_selector(action: str) -> Callable[[dict[str, Any]], list[str]]:
    def _check(step: dict[str, Any]) -> list[str]:
        return [] if _present(step, "selector") else [f"{action} action requires 'selector'"]

    return _check


def _check_type(step: dict[str, Any]) -> list[str]:
    if not _present(step, "selector") or step.get("value") is None:
        return ["type action requires both 'selector' and 'value'"]
    return []


def _check_wait(step: dict[str, Any]) -> list[str]:
    if _present(step, "condition"):
        return []
    if not _present(step, "value"):
        return ["wait action requires either 'condition' or 'value'"]
    if not _is_duration(step["value"]):
        return [f"wait value {step['value']!r} is not a duration in milliseconds"]
    return []


def _check_fill_form(step: dict[str, Any]) -> list[str]:
    form_data = step.get("formData", step.get("form_data"))
    if not _present(step, "selector") or not isinstance(form_data, dict) or not form_data:
        return ["fill_form action requires both 'selector' and 'formData'"]
    return []


def _check_assert(step: dict[str, Any]) -> list[str]:
    return [] if _present(step, "condition") else ["assert action requires 'condition'"]


_REQUIRED_FIELDS: dict[StepAction, Callable[[dict[str, Any]], list[str]]] = {
    StepAction.NAVIGATE: _check_navigate,
    StepAction.CLICK: _check_selector("click"),
    StepAction.TYPE: _check_type,
    StepAction.WAIT: _check_wait,
    StepAction.ASSERT: _check_assert,
    StepAction.SCREENSHOT: lambda step: [],
    StepAction.FILL_FORM: _check_fill_form,
    StepAction.SUBMIT_FORM: _check_selector("submit_form"),
    StepAction.WAIT_FOR_ELEMENT: _check_selector("wait_for_element"),
}


def _to_raw(definition: Any) -> tuple[dict[str, Any], list[str]]:
    """Normalise any accepted input into a raw definition dict."""
    if isinstance(definition, JourneyDefinition):
        return definition.model_dump(mode="json", by_alias=True, exclude_none=True), []
    if isinstance(definition, (str, bytes)):
        try:
            definition = json.loads(definition)
        except json.JSONDecodeError as exc:
            return {}, [f"Invalid JSON: {exc}"]
    if isinstance(definition, list):
        return {"steps": definition}, []
    if isinstance(definition, dict):
        return definition, []
    return {}, [f"Unsupported journey definition type: {type(definition).__name__}"]


def _step_timeout(step: dict[str, Any]) -> Any:
    return step.get("timeoutMs", step.get("timeout_ms"))


def validate_journey_definition(definition: Any, *, max_timeout_ms: int | None = None) -> ValidationReport:
    """Check a journey definition without executing it.

    Args:
        definition: A ``JourneyDefinition``, a dict with ``steps``, a bare
            list of steps, or JSON text of either.
        max_timeout_ms: Timeouts above this draw a warning. Defaults to
            ``journey.max_plausible_timeout_ms`` from settings.

    Returns:
        A ``ValidationReport``; ``is_valid`` is False if any error was found.
    """
    if max_timeout_ms is None:
        from waymark.settings import get_settings

        max_timeout_ms = get_settings().journey.max_plausible_timeout_ms

    raw, errors = _to_raw(definition)
    warnings: list[str] = []
    if errors:
        return ValidationReport(is_valid=False, errors=errors, step_count=0)

    steps = raw.get("steps")
    if not isinstance(steps, list) or not steps:
        return ValidationReport(
            is_valid=False,
            errors=["steps must be a non-empty list"],
            step_count=0,
        )

    seen_ids: set[str] = set()
    for index, step in enumerate(steps):
        if not isinstance(step, dict):
            errors.append(f"Step {index}: must be an object")
            continue

        step_id = step.get("id")
        if not isinstance(step_id, str) or not step_id:
            errors.append(f"Step {index}: invalid or missing id")
            label = f"#{index}"
        else:
            label = step_id
            if step_id in seen_ids:
                errors.append(f"Duplicate step ID: {step_id}")
            seen_ids.add(step_id)

        action = step.get("action")
        if action not in _ACTIONS:
            errors.append(f"Step {label}: invalid action '{action}'")
        else:
            errors.extend(f"Step {label}: {msg}" for msg in _REQUIRED_FIELDS[StepAction(action)](step))

        timeout = _step_timeout(step)
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                errors.append(f"Step {label}: timeoutMs must be a number")
            elif timeout <= 0 or timeout > max_timeout_ms:
                warnings.append(
                    f"Step {label}: timeout {timeout}ms seems unusual (expected 1-{max_timeout_ms}ms)"
                )

        on_error = step.get("onError", step.get("on_error"))
        if on_error is not None and on_error not in _POLICIES:
            errors.append(f"Step {label}: invalid onError strategy '{on_error}'")

        retry_count = step.get("retryCount", step.get("retry_count"))
        if on_error == ErrorPolicy.RETRY.value and (
            not isinstance(retry_count, int) or isinstance(retry_count, bool) or retry_count <= 0
        ):
            warnings.append(f"Step {label}: retry strategy without valid retryCount")

    if not errors:
        try:
            JourneyDefinition.model_validate(raw)
        except ValidationError as exc:
            for err in exc.errors():
                loc = ".".join(str(part) for part in err["loc"])
                errors.append(f"{loc}: {err['msg']}")

    return ValidationReport(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        step_count=len(steps),
    )


def parse_journey(definition: Any, *, name: str | None = None) -> JourneyDefinition:
    """Validate *definition* and return it as a ``JourneyDefinition``.

    Args:
        definition: Any input accepted by :func:`validate_journey_definition`.
        name: Overrides the definition's name (bare step lists have none).

    Raises:
        JourneyValidationError: If validation finds any error.
    """
    report = validate_journey_definition(definition)
    if not report.is_valid:
        raise JourneyValidationError(report.errors, report.warnings)
    for warning in report.warnings:
        logger.warning("Journey validation: %s", warning)

    if isinstance(definition, JourneyDefinition):
        return definition if name is None else definition.model_copy(update={"name": name})
    raw, _ = _to_raw(definition)
    if name is not None:
        raw = {**raw, "name": name}
    return JourneyDefinition.model_validate(raw)
