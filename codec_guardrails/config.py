"""
Harness configuration.

All settings come from the environment (GUARDRAILS_ prefix). Guardrail
child processes inherit the runner's environment, so a single set of
variables drives the whole run.

    GUARDRAILS_TARGET               codec target (default: reference)
    GUARDRAILS_TIMEOUT              per-guardrail timeout, seconds (default: 300)
    GUARDRAILS_LOG_LEVEL            debug | info | warning | error (default: info)
    GUARDRAILS_LOG_FORMAT           text | json (default: text)
    GUARDRAILS_SEVERITY_<NAME>      blocking | advisory, per guardrail
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from codec_guardrails.errors import ConfigurationError

ENV_PREFIX = "GUARDRAILS_"

DEFAULT_TIMEOUT_SECONDS = 300.0


class Severity(Enum):
    """How a threshold breach affects a guardrail's exit status."""

    BLOCKING = "blocking"
    """Breach fails the guardrail."""

    ADVISORY = "advisory"
    """Breach is logged as a warning; the guardrail still passes."""


# Names accepted in GUARDRAILS_SEVERITY_<NAME>, in execution order.
GUARDRAIL_NAMES = ("memory", "responsiveness", "fuzzer", "throughput")

# Severity used when no GUARDRAILS_SEVERITY_<NAME> override is set.
DEFAULT_SEVERITIES: dict[str, Severity] = {
    "responsiveness": Severity.ADVISORY,
}


@dataclass(frozen=True)
class HarnessConfig:
    """Settings shared by the runner and every guardrail.

    Example:
        config = HarnessConfig.from_env()
        config.severity_for("responsiveness")  # Severity.ADVISORY
    """

    target: str = "reference"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    log_level: str = "info"
    log_format: str = "text"
    severities: dict[str, Severity] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.target.strip():
            raise ConfigurationError("target must not be empty", setting="TARGET")
        if not math.isfinite(self.timeout_seconds) or self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout must be a finite number > 0 seconds, got {self.timeout_seconds!r}",
                setting="TIMEOUT",
            )
        for name in self.severities:
            if name not in GUARDRAIL_NAMES:
                raise ConfigurationError(
                    f"Unknown guardrail in severity override: {name!r} "
                    f"(known: {', '.join(GUARDRAIL_NAMES)})",
                    setting=f"SEVERITY_{name.upper()}",
                )
        if self.log_level not in ("debug", "info", "warning", "error", "critical"):
            raise ConfigurationError(
                f"Unknown log level: {self.log_level!r}", setting="LOG_LEVEL"
            )
        if self.log_format not in ("text", "json"):
            raise ConfigurationError(
                f"Unknown log format: {self.log_format!r}", setting="LOG_FORMAT"
            )

    def severity_for(self, guardrail: str) -> Severity:
        """Severity of the named guardrail (override, else default)."""
        if guardrail in self.severities:
            return self.severities[guardrail]
        return DEFAULT_SEVERITIES.get(guardrail, Severity.BLOCKING)

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> "HarnessConfig":
        env = os.environ if environ is None else environ

        target = env.get(f"{ENV_PREFIX}TARGET", "reference").strip() or "reference"

        raw_timeout = env.get(f"{ENV_PREFIX}TIMEOUT", "").strip()
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            raise ConfigurationError(
                f"GUARDRAILS_TIMEOUT must be a number, got {raw_timeout!r}",
                setting="TIMEOUT",
            ) from None

        log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL", "info").strip().lower() or "info"
        log_format = env.get(f"{ENV_PREFIX}LOG_FORMAT", "text").strip().lower() or "text"

        severities: dict[str, Severity] = {}
        severity_prefix = f"{ENV_PREFIX}SEVERITY_"
        for key, value in env.items():
            if not key.startswith(severity_prefix):
                continue
            name = key[len(severity_prefix):].lower()
            try:
                severities[name] = Severity(value.strip().lower())
            except ValueError:
                raise ConfigurationError(
                    f"{key} must be 'blocking' or 'advisory', got {value!r}",
                    setting=key[len(ENV_PREFIX):],
                ) from None

        return HarnessConfig(
            target=target,
            timeout_seconds=timeout,
            log_level=log_level,
            log_format=log_format,
            severities=severities,
        )
