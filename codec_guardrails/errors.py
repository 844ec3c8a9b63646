"""
Harness Errors - Failures of the guardrail harness itself.

Error hierarchy:
    GuardrailError (base)
    ├── TargetLoadError      (encoding library cannot be resolved)
    └── ConfigurationError   (invalid GUARDRAILS_* setting)

Measured threshold violations are not exceptions; they are recorded as
Breach entries on a GuardrailVerdict.
"""

from __future__ import annotations

from typing import Any


class GuardrailError(Exception):
    """Base error for all harness errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TargetLoadError(GuardrailError):
    """Raised when the codec target cannot be imported or is incomplete."""

    def __init__(
        self,
        message: str,
        target: str = "",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(f"Cannot load codec target: {message}", details)
        self.target = target


class ConfigurationError(GuardrailError):
    """Raised for an invalid harness setting."""

    def __init__(
        self,
        message: str,
        setting: str = "",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.setting = setting
