"""
Codec Errors - Failure types raised by codec targets.

Error hierarchy:
    CodecError (base)
    ├── InvalidStateError   (closed frame, unconfigured/closed encoder)
    └── EncodingError       (failure inside the encode pipeline)

Argument validation uses the builtin TypeError / ValueError, the same way
the encoding library's own bindings surface bad input.
"""

from __future__ import annotations

from typing import Any


class CodecError(Exception):
    """Base error for codec target failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidStateError(CodecError):
    """Raised when an object is used in a state that does not allow it.

    Examples:
    - Encoding a frame that was already closed
    - Encoding before configure() or after close()
    """

    def __init__(self, message: str, state: str = "unknown", details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.state = state


class EncodingError(CodecError):
    """Raised (or passed to the error callback) when encoding a frame fails."""

    def __init__(self, message: str, timestamp: int | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.timestamp = timestamp
