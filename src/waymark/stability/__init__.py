"""Page stability coordination."""

from waymark.stability.coordinator import StabilityCoordinator, StabilityOptions
from waymark.stability.polling import poll_until

__all__ = ["StabilityCoordinator", "StabilityOptions", "poll_until"]
