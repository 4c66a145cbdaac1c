"""Journey data models — declarative step sequences and their outcomes.

Models accept both snake_case and the interchange spelling on input
(``timeoutMs``, ``onError``, ``formData`` ...) and dump by alias, so a
definition read from JSON round-trips with the same field names.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_duration(value: Any) -> float | None:
    """Return *value* as a finite, non-negative millisecond count, else ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return float(value)


def format_duration(ms: float) -> str:
    if isinstance(ms, int) or (math.isfinite(ms) and ms.is_integer()):
        return str(int(ms))
    return str(ms)


class StepAction(str, Enum):
    """Action kinds a journey step can perform."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    ASSERT = "assert"
    SCREENSHOT = "screenshot"
    FILL_FORM = "fill_form"
    SUBMIT_FORM = "submit_form"
    WAIT_FOR_ELEMENT = "wait_for_element"


class ErrorPolicy(str, Enum):
    """What the executor does when a step fails."""

    CONTINUE = "continue"
    RETRY = "retry"
    FAIL = "fail"


class JourneyStep(BaseModel):
    """Single declarative step in a journey."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    action: StepAction
    selector: str | None = None
    value: str | None = None
    condition: str | None = None
    timeout_ms: int | None = Field(default=None, alias="timeoutMs")
    retry_count: int | None = Field(default=None, alias="retryCount", ge=0, le=10)
    on_error: ErrorPolicy = Field(default=ErrorPolicy.FAIL, alias="onError")
    form_data: dict[str, Any] | None = Field(default=None, alias="formData")
    submit_selector: str | None = Field(default=None, alias="submitSelector")
    description: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> Any:
        """Accept numeric values (e.g. wait durations) and store them as text."""
        if isinstance(v, bool):
            return str(v).lower()
        if isinstance(v, (int, float)):
            return format_duration(v)
        return v


class JourneyDefinition(BaseModel):
    """A named, ordered list of steps."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = "journey"
    steps: list[JourneyStep] = Field(default_factory=list)
    max_duration_ms: int | None = Field(default=None, alias="maxDurationMs", gt=0)


class StepError(BaseModel):
    """Failure record for one step."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    step_id: str = Field(alias="stepId")
    action: str
    message: str
    error_type: str = Field(default="", alias="errorType")
    attempts: int = 1


class JourneyResult(BaseModel):
    """Structured outcome of one journey run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = ""
    success: bool
    per_step_timings_ms: dict[str, float] = Field(default_factory=dict, alias="perStepTimingsMs")
    errors: list[StepError] = Field(default_factory=list)
    completed_step_count: int = Field(default=0, alias="completedStepCount")
    skipped_steps: list[str] = Field(default_factory=list, alias="skippedSteps")
    screenshots: list[str] = Field(default_factory=list)
    video_path: str | None = Field(default=None, alias="videoPath")
    duration_ms: float = Field(default=0.0, alias="durationMs")


class ValidationReport(BaseModel):
    """Outcome of validating a journey definition."""

    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    step_count: int = Field(default=0, alias="stepCount")


class OptimizationResult(BaseModel):
    """Outcome of optimizing a journey definition."""

    model_config = ConfigDict(populate_by_name=True)

    original_step_count: int = Field(alias="originalStepCount")
    optimized_step_count: int = Field(alias="optimizedStepCount")
    optimizations_applied: int = Field(default=0, alias="optimizationsApplied")
    optimized_steps: list[JourneyStep] = Field(default_factory=list, alias="optimizedSteps")
    summary: str = ""
