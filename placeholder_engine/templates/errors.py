"""Exceptions raised by the placeholder engine.

Per-expression failures (unknown functions, bad literals, functions that
raise) are caught by ``PlaceholderResolver.resolve`` and leave the placeholder
text in place unless ``throw_on_undefined`` is set. ``DepthExceededError`` is
never caught: it aborts the whole resolve call.
"""

from typing import Optional


class PlaceholderError(Exception):
    """Base class for placeholder engine errors."""

    pass


class FunctionNotFoundError(PlaceholderError):
    """A call referenced a name absent from every registry tier."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Function '{name}' not found")


class FunctionCallError(PlaceholderError):
    """A registered function raised while being called."""

    def __init__(self, name: str, error: Exception):
        self.name = name
        self.error = error
        super().__init__(f"Function '{name}' failed: {error}")


class InvalidExpressionError(PlaceholderError):
    """An expression (or pipeline stage) could not be parsed."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        super().__init__(f"Invalid expression '{expression}': {reason}")


class MalformedLiteralError(PlaceholderError):
    """A JSON array/object literal argument failed to parse."""

    def __init__(self, literal: str, reason: Optional[str] = None):
        self.literal = literal
        message = f"Malformed literal: {literal}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class DepthExceededError(PlaceholderError):
    """The recursion guard tripped, usually on a self-referential variable."""

    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        super().__init__(
            f"Maximum placeholder resolution depth ({max_depth}) exceeded"
        )


class CacheCorruptionError(PlaceholderError):
    """A cached value no longer matches the checksum stored with it."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Cache entry failed integrity check: {key}")
