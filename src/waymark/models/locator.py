"""Locator data models — declarative element targets and resolution strategies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class HintType(str, Enum):
    """Optional caller hint describing what kind of selector was supplied."""

    CSS = "css"
    XPATH = "xpath"
    TEXT = "text"
    ROLE = "role"
    LABEL = "label"
    PLACEHOLDER = "placeholder"
    DATA = "data"


class StrategyKind(str, Enum):
    """Concrete driver query kinds a locator can be turned into."""

    CSS = "css"
    XPATH = "xpath"
    TEXT_EXACT = "text-exact"
    TEXT_PARTIAL = "text-partial"
    ROLE = "role"
    LABEL = "label"
    PLACEHOLDER = "placeholder"
    TESTID = "testid"
    ATTRIBUTE = "attribute"


class LocatorSpec(BaseModel):
    """Declarative description of one target element.

    ``timeout_ms`` and ``retry_count`` default to ``None`` so the resolver can
    fill them from settings. Field names serialize with the interchange
    spelling (``hintType``, ``timeoutMs``, ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    selector: str
    hint_type: HintType | None = Field(default=None, alias="hintType")
    timeout_ms: int | None = Field(default=None, alias="timeoutMs", gt=0)
    visibility_check: bool = Field(default=False, alias="visibilityCheck")
    retry_count: int | None = Field(default=None, alias="retryCount", ge=0, le=10)


@dataclass(frozen=True)
class ResolutionStrategy:
    """One way of turning a ``LocatorSpec`` into a driver query."""

    kind: StrategyKind
    candidate_selector: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.candidate_selector}"
