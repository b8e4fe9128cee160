"""Cognis dual-track terminal sessions."""

__version__ = "0.1.0"
