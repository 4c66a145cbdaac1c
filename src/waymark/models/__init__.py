"""Waymark data models."""

from waymark.models.journey import (
    ErrorPolicy,
    JourneyDefinition,
    JourneyResult,
    JourneyStep,
    OptimizationResult,
    StepAction,
    StepError,
    ValidationReport,
)
from waymark.models.locator import HintType, LocatorSpec, ResolutionStrategy, StrategyKind
from waymark.models.recording import (
    RecordedStep,
    RecordingOptions,
    RecordingResult,
    RecordingSession,
    RecordingStatus,
    SelectorSuggestion,
)
from waymark.models.state import PageState, StabilitySnapshot, StateTransition

__all__ = [
    "ErrorPolicy",
    "HintType",
    "JourneyDefinition",
    "JourneyResult",
    "JourneyStep",
    "LocatorSpec",
    "OptimizationResult",
    "PageState",
    "RecordedStep",
    "RecordingOptions",
    "RecordingResult",
    "RecordingSession",
    "RecordingStatus",
    "ResolutionStrategy",
    "SelectorSuggestion",
    "StabilitySnapshot",
    "StateTransition",
    "StepAction",
    "StepError",
    "StrategyKind",
    "ValidationReport",
]
