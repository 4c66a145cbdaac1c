"""Waymark settings package."""

from waymark.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
