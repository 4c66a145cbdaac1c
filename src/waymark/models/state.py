"""Page readiness state definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PageState(str, Enum):
    """Readiness of one orchestrated page."""

    LOADING = "loading"
    INTERACTIVE = "interactive"
    STABLE = "stable"
    NAVIGATING = "navigating"
    ERROR = "error"


class StateTransition(BaseModel):
    """A single recorded page state change."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_state: PageState = Field(alias="from")
    to_state: PageState = Field(alias="to")
    timestamp_ms: float = Field(alias="timestampMs")
    trigger: str = ""


@dataclass(frozen=True)
class StabilitySnapshot:
    """One poll tick's view of the stability signals.

    Disabled signals are reported in their passing position.
    """

    dom_mutation_count: int
    network_idle: bool
    animations_running: bool
    custom_predicate_passed: bool

    def is_stable(self, mutation_threshold: int) -> bool:
        """Return True if every signal passes for the given mutation threshold."""
        return (
            self.dom_mutation_count < mutation_threshold
            and self.network_idle
            and not self.animations_running
            and self.custom_predicate_passed
        )
