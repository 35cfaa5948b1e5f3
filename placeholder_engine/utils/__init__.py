"""Utility modules for the placeholder engine.

Provides:
- Structured logging configuration
"""

from .logging import build_processors, configure_from_settings, configure_logging, log_operation

__all__ = [
    # Logging
    "build_processors",
    "configure_logging",
    "configure_from_settings",
    "log_operation",
]
