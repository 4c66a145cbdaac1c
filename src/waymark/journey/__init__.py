"""Journey execution engine — validate, optimize, load and run journeys."""

from waymark.journey.executor import JourneyExecutor
from waymark.journey.forms import FormFillResult, FormOperations
from waymark.journey.loader import load_journey_from_file, load_journeys_from_dir
from waymark.journey.optimizer import optimize_journey_definition
from waymark.journey.recorder import JourneyRecorder, generate_selector_suggestions
from waymark.journey.validation import parse_journey, validate_journey_definition

__all__ = [
    "FormFillResult",
    "FormOperations",
    "JourneyExecutor",
    "JourneyRecorder",
    "generate_selector_suggestions",
    "load_journey_from_file",
    "load_journeys_from_dir",
    "optimize_journey_definition",
    "parse_journey",
    "validate_journey_definition",
]
