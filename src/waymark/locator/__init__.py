"""Selector resolution engine."""

from waymark.locator.resolver import SelectorResolver, release_handle
from waymark.locator.strategies import generate_strategies

__all__ = ["SelectorResolver", "generate_strategies", "release_handle"]
