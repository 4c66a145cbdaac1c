"""Command-line interface for Waymark."""
