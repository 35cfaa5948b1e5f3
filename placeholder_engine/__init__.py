"""Placeholder resolution engine for parameterized requests and test data."""

__version__ = "0.1.0"
