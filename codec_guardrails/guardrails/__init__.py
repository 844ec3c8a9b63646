"""
Guardrails - Independently runnable checks against the codec target.

Each guardrail module runs as its own process:

    python -X faulthandler -m codec_guardrails.guardrails memory

and exits 0 (passed, or advisory warning) or 1 (failed). GUARDRAILS lists
them in execution order.
"""

from codec_guardrails.guardrails.base import (
    EXIT_FAILED,
    EXIT_PASSED,
    Breach,
    BreachKind,
    ChunkSink,
    Guardrail,
    GuardrailVerdict,
    VerdictStatus,
    run_guardrail,
)
from codec_guardrails.guardrails.fuzzer import (
    EDGE_CASE_VECTORS,
    MUST_REJECT_VECTORS,
    FuzzVector,
    InputFuzzer,
)
from codec_guardrails.guardrails.memory import MemorySentinel
from codec_guardrails.guardrails.responsiveness import Heartbeat, ResponsivenessWatchdog
from codec_guardrails.guardrails.throughput import ThroughputBenchmark

# Execution order = declaration order.
GUARDRAILS: tuple[type[Guardrail], ...] = (
    MemorySentinel,
    ResponsivenessWatchdog,
    InputFuzzer,
    ThroughputBenchmark,
)


def get_guardrail(name: str) -> type[Guardrail]:
    """Look up a guardrail class by its short name."""
    for guardrail in GUARDRAILS:
        if guardrail.name == name:
            return guardrail
    known = ", ".join(g.name for g in GUARDRAILS)
    raise ValueError(f"Unknown guardrail: {name!r} (known: {known})")


__all__ = [
    "EXIT_FAILED",
    "EXIT_PASSED",
    "Breach",
    "BreachKind",
    "ChunkSink",
    "Guardrail",
    "GuardrailVerdict",
    "VerdictStatus",
    "run_guardrail",
    "EDGE_CASE_VECTORS",
    "MUST_REJECT_VECTORS",
    "FuzzVector",
    "InputFuzzer",
    "MemorySentinel",
    "Heartbeat",
    "ResponsivenessWatchdog",
    "ThroughputBenchmark",
    "GUARDRAILS",
    "get_guardrail",
]
