"""Lighter background service — market polling, decision validation, trade execution."""

__version__ = "0.1.0"
