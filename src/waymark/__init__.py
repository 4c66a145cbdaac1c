"""Waymark — resilient element resolution, page stability, and journey execution."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("waymark")
except Exception:
    __version__ = "0.0.0"
