"""Rat Watch: deadline watches decided by a timed public vote."""

__version__ = "0.1.0"
