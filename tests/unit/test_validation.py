"""Unit tests for waymark.journey.validation — definition checks and parsing."""

from __future__ import annotations

import json
from typing import Any

import pytest

from waymark.exceptions import JourneyValidationError
from waymark.journey.validation import parse_journey, validate_journey_definition
from waymark.models.journey import ErrorPolicy, JourneyDefinition, JourneyStep, StepAction


def _validate(steps: list[Any], **kwargs: Any):
    return validate_journey_definition({"steps": steps}, max_timeout_ms=60_000, **kwargs)


class TestValidateJourneyDefinition:
    """Error and warning reporting."""

    def test_valid_definition(self) -> None:
        report = _validate(
            [
                {"id": "open", "action": "navigate", "value": "https://example.test"},
                {"id": "go", "action": "click", "selector": "#go"},
                {"id": "pause", "action": "wait", "value": 250},
            ]
        )
        assert report.is_valid
        assert report.errors == []
        assert report.step_count == 3

    @pytest.mark.parametrize("definition", [{}, {"steps": []}, {"steps": "nope"}, []])
    def test_missing_or_empty_steps(self, definition: Any) -> None:
        report = validate_journey_definition(definition, max_timeout_ms=60_000)
        assert not report.is_valid
        assert report.errors == ["steps must be a non-empty list"]

    def test_duplicate_ids_anywhere(self) -> None:
        report = _validate(
            [
                {"id": "a", "action": "screenshot"},
                {"id": "b", "action": "screenshot"},
                {"id": "c", "action": "screenshot"},
                {"id": "a", "action": "screenshot"},
            ]
        )
        assert not report.is_valid
        assert "Duplicate step ID: a" in report.errors

    def test_missing_id(self) -> None:
        report = _validate([{"action": "screenshot"}])
        assert report.errors == ["Step 0: invalid or missing id"]

    def test_non_object_step(self) -> None:
        report = _validate(["click #go"])
        assert report.errors == ["Step 0: must be an object"]

    def test_invalid_action(self) -> None:
        report = _validate([{"id": "h", "action": "hover", "selector": "#a"}])
        assert report.errors == ["Step h: invalid action 'hover'"]

    @pytest.mark.parametrize(
        ("step", "message"),
        [
            ({"id": "s", "action": "navigate"}, "Step s: navigate action requires 'value' (URL)"),
            ({"id": "s", "action": "click"}, "Step s: click action requires 'selector'"),
            ({"id": "s", "action": "type", "selector": "#q"}, "Step s: type action requires both 'selector' and 'value'"),
            ({"id": "s", "action": "wait"}, "Step s: wait action requires either 'condition' or 'value'"),
            ({"id": "s", "action": "assert"}, "Step s: assert action requires 'condition'"),
            ({"id": "s", "action": "fill_form", "selector": "form"}, "Step s: fill_form action requires both 'selector' and 'formData'"),
            ({"id": "s", "action": "submit_form"}, "Step s: submit_form action requires 'selector'"),
            ({"id": "s", "action": "wait_for_element"}, "Step s: wait_for_element action requires 'selector'"),
        ],
    )
    def test_required_fields(self, step: dict[str, Any], message: str) -> None:
        report = _validate([step])
        assert not report.is_valid
        assert message in report.errors

    def test_type_accepts_empty_value(self) -> None:
        assert _validate([{"id": "clear", "action": "type", "selector": "#q", "value": ""}]).is_valid

    def test_wait_value_must_be_duration(self) -> None:
        report = _validate([{"id": "w", "action": "wait", "value": "soon"}])
        assert not report.is_valid
        assert "not a duration" in report.errors[0]

    @pytest.mark.parametrize("value", ["inf", "1e400", "nan", "-5", float("inf")])
    def test_wait_value_must_be_finite_and_non_negative(self, value: Any) -> None:
        report = _validate([{"id": "w", "action": "wait", "value": value}])
        assert not report.is_valid
        assert "not a duration" in report.errors[0]

    def test_wait_accepts_fractional_duration(self) -> None:
        assert _validate([{"id": "w", "action": "wait", "value": "250.5"}]).is_valid

    def test_wait_with_condition_needs_no_value(self) -> None:
        assert _validate([{"id": "w", "action": "wait", "condition": "window.ready"}]).is_valid

    def test_timeout_must_be_numeric(self) -> None:
        report = _validate([{"id": "s", "action": "screenshot", "timeoutMs": "fast"}])
        assert "Step s: timeoutMs must be a number" in report.errors

    @pytest.mark.parametrize("timeout", [0, -5, 120_000])
    def test_implausible_timeout_warns(self, timeout: int) -> None:
        report = _validate([{"id": "s", "action": "screenshot", "timeoutMs": timeout}])
        assert any("seems unusual" in w for w in report.warnings)

    def test_invalid_on_error(self) -> None:
        report = _validate([{"id": "s", "action": "screenshot", "onError": "ignore"}])
        assert "Step s: invalid onError strategy 'ignore'" in report.errors

    def test_retry_without_count_warns(self) -> None:
        report = _validate([{"id": "s", "action": "screenshot", "onError": "retry"}])
        assert report.is_valid
        assert report.warnings == ["Step s: retry strategy without valid retryCount"]

    def test_reports_every_problem_at_once(self) -> None:
        report = _validate(
            [
                {"id": "a", "action": "click"},
                {"id": "a", "action": "fly"},
                {"action": "assert"},
            ]
        )
        assert len(report.errors) == 5

    def test_model_errors_surface_after_field_checks(self) -> None:
        report = _validate([{"id": "s", "action": "screenshot", "retryCount": 50}])
        assert not report.is_valid
        assert report.errors[0].startswith("steps.0.retryCount")

    def test_accepts_model_and_json_text(self) -> None:
        journey = JourneyDefinition(steps=[JourneyStep(id="s", action=StepAction.SCREENSHOT)])
        assert validate_journey_definition(journey, max_timeout_ms=60_000).is_valid
        text = json.dumps({"steps": [{"id": "s", "action": "screenshot"}]})
        assert validate_journey_definition(text, max_timeout_ms=60_000).is_valid

    def test_bad_json_text(self) -> None:
        report = validate_journey_definition("{not json", max_timeout_ms=60_000)
        assert not report.is_valid
        assert report.errors[0].startswith("Invalid JSON")

    def test_uses_configured_timeout_ceiling(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WAYMARK_JOURNEY__MAX_PLAUSIBLE_TIMEOUT_MS", "1000")
        report = validate_journey_definition({"steps": [{"id": "s", "action": "screenshot", "timeoutMs": 5000}]})
        assert report.warnings


class TestParseJourney:
    """Parsing into models."""

    def test_returns_definition(self) -> None:
        journey = parse_journey(
            {
                "name": "checkout",
                "maxDurationMs": 5000,
                "steps": [{"id": "s", "action": "click", "selector": "#buy", "onError": "continue"}],
            }
        )
        assert journey.name == "checkout"
        assert journey.max_duration_ms == 5000
        assert journey.steps[0].on_error == ErrorPolicy.CONTINUE

    def test_bare_list_with_name(self) -> None:
        journey = parse_journey([{"id": "s", "action": "screenshot"}], name="snap")
        assert journey.name == "snap"

    def test_model_passthrough_and_rename(self) -> None:
        original = JourneyDefinition(name="a", steps=[JourneyStep(id="s", action="screenshot")])
        assert parse_journey(original) is original
        renamed = parse_journey(original, name="b")
        assert renamed.name == "b"
        assert original.name == "a"

    def test_invalid_raises_with_errors(self) -> None:
        with pytest.raises(JourneyValidationError) as exc_info:
            parse_journey({"steps": [{"id": "x", "action": "click"}]})
        assert exc_info.value.errors == ["Step x: click action requires 'selector'"]
        assert "click action requires" in str(exc_info.value)
