"""Journey loader: read journey definitions from JSON files on disk.

Journey files live in a configurable directory (default:
``config/journeys/``). Each ``.json`` file holds either a definition object
(``{"name": ..., "steps": [...]}``) or a bare list of steps, in which case the
file stem becomes the journey name.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from waymark.journey.validation import parse_journey
from waymark.models.journey import JourneyDefinition

logger = logging.getLogger(__name__)


def load_journey_from_file(path: Path | str) -> JourneyDefinition:
    """Load and validate a single journey from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        A validated ``JourneyDefinition``.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        JourneyValidationError: If the definition is invalid.
    """
    path = Path(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    return journey_from_data(data, path.stem)


def journey_from_data(data: Any, default_name: str) -> JourneyDefinition:
    """Parse decoded journey JSON, naming it *default_name* only if it has no name."""
    if isinstance(data, dict) and data.get("name"):
        return parse_journey(data)
    return parse_journey(data, name=default_name)


def load_journeys_from_dir(directory: Path | str) -> list[JourneyDefinition]:
    """Load all journey JSON files from a directory.

    Files that fail to parse or validate are logged and skipped rather than
    aborting the entire load.

    Args:
        directory: Path to the journeys directory.

    Returns:
        List of successfully loaded journeys, in file-name order.
    """
    dir_path = Path(directory)
    if not dir_path.is_dir():
        logger.warning("Journey directory does not exist: %s", dir_path)
        return []

    journeys: list[JourneyDefinition] = []
    for json_file in sorted(dir_path.glob("*.json")):
        try:
            journey = load_journey_from_file(json_file)
            journeys.append(journey)
            logger.info("Loaded journey %s from %s", journey.name, json_file.name)
        except Exception:
            logger.exception("Failed to load journey from %s", json_file)
    return journeys
