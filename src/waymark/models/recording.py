"""Recording models — sessions captured from live interaction."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from waymark.models.journey import JourneyDefinition, StepAction


class SelectorSuggestion(BaseModel):
    """One candidate selector for a recorded element, scored by robustness."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    selector: str
    score: int = Field(ge=0, le=100)
    kind: str
    description: str = ""


class RecordingOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = "recorded-journey"
    description: str = ""
    auto_selectors: bool = Field(default=True, alias="autoSelectors")
    exclude_actions: list[StepAction] = Field(default_factory=list, alias="excludeActions")
    exclude_selectors: list[str] = Field(default_factory=list, alias="excludeSelectors")
    min_interaction_delay_ms: int = Field(default=0, alias="minInteractionDelayMs", ge=0)
    record_video: bool = Field(default=False, alias="recordVideo")


class RecordedStep(BaseModel):
    """A single captured interaction, before conversion to a journey step."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    action: StepAction
    timestamp: datetime
    selector: str | None = None
    value: str | None = None
    element_tag: str | None = Field(default=None, alias="elementTag")
    element_id: str | None = Field(default=None, alias="elementId")
    element_text: str | None = Field(default=None, alias="elementText")
    selector_options: list[SelectorSuggestion] = Field(default_factory=list, alias="selectorOptions")


class RecordingSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    options: RecordingOptions = Field(default_factory=RecordingOptions)
    start_url: str = Field(default="", alias="startUrl")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="startedAt")
    ended_at: datetime | None = Field(default=None, alias="endedAt")
    steps: list[RecordedStep] = Field(default_factory=list)
    is_paused: bool = Field(default=False, alias="isPaused")


class RecordingStatus(BaseModel):
    """Snapshot of the recorder for status displays."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    is_recording: bool = Field(default=False, alias="isRecording")
    is_paused: bool = Field(default=False, alias="isPaused")
    current_url: str = Field(default="", alias="currentUrl")
    steps_recorded: int = Field(default=0, alias="stepsRecorded")
    recording_duration_ms: float = Field(default=0.0, alias="recordingDurationMs")
    can_pause: bool = Field(default=False, alias="canPause")
    can_resume: bool = Field(default=False, alias="canResume")
    can_stop: bool = Field(default=False, alias="canStop")


class RecordingStatistics(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_events: int = Field(default=0, alias="totalEvents")
    events_filtered: int = Field(default=0, alias="eventsFiltered")
    steps_generated: int = Field(default=0, alias="stepsGenerated")
    action_counts: dict[str, int] = Field(default_factory=dict, alias="actionCounts")
    duration_ms: float = Field(default=0.0, alias="durationMs")


class RecordingOptimization(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    duplicates_removed: int = Field(default=0, alias="duplicatesRemoved")
    waits_merged: int = Field(default=0, alias="waitsMerged")


class RecordingResult(BaseModel):
    """Outcome of stopping a recording: the captured journey and its numbers."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session: RecordingSession
    journey: JourneyDefinition
    statistics: RecordingStatistics
    optimization: RecordingOptimization
    video_path: str | None = Field(default=None, alias="videoPath")
