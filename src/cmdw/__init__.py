"""Timestamped command history for interactive shells."""

__version__ = "0.2.0"
