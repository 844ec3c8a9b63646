"""
codec-guardrails - Release gate for a native video encoding library.

Architecture:
    Runner → (one process per guardrail) → Guardrail → CodecTarget

Guardrails:
    memory          - Memory Sentinel: RSS growth over 10,000 encode/close cycles
    responsiveness  - Responsiveness Watchdog: event-loop lag while encoding 1080p
    fuzzer          - Input Fuzzer: malformed frames must raise, never crash
    throughput      - Throughput Benchmark: 720p encode rate vs. 30 FPS

Public API:
    Runner, GuardrailSpec, GuardrailResult, Outcome - orchestration
    default_specs   - Specs for every registered guardrail
    HarnessConfig   - Settings from GUARDRAILS_* environment variables
    load_target     - Resolve the codec library under test

Example:
    from codec_guardrails import HarnessConfig, Runner, default_specs

    results = Runner().run(default_specs(HarnessConfig.from_env()))
    raise SystemExit(Runner.exit_code(results))

Command line:
    codec-guardrails            # run everything, exit 0/1
    codec-guardrails --only fuzzer
"""

__version__ = "0.1.0"

from codec_guardrails.config import HarnessConfig, Severity
from codec_guardrails.errors import ConfigurationError, GuardrailError, TargetLoadError
from codec_guardrails.runner import (
    GuardrailResult,
    GuardrailSpec,
    Outcome,
    Runner,
    default_specs,
)
from codec_guardrails.target import load_target

__all__ = [
    "HarnessConfig",
    "Severity",
    "ConfigurationError",
    "GuardrailError",
    "TargetLoadError",
    "GuardrailResult",
    "GuardrailSpec",
    "Outcome",
    "Runner",
    "default_specs",
    "load_target",
    "__version__",
]
