"""Exposure Watch - correlates location and proximity history with sick reports."""

__version__ = "0.1.0"
