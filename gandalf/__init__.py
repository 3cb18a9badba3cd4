"""Persistent, fixed-window rate limiting for callables, stored in SQLite."""

__version__ = "0.1.0"