"""
Guardrail Base - Measurement/verdict contract shared by every guardrail.

GUARDRAIL CONTRACT:
    Guardrails MUST:
        - Collect MetricSamples only from work done in their own process
        - Derive the verdict from those samples alone (evaluate(samples))
        - Exit 0 for PASSED/WARNED and 1 for FAILED
        - Report measured value and limit for every breach

    Guardrails MUST NOT:
        - Retry or recover from an unexpected failure
        - Read state left behind by another guardrail
        - Decide the aggregate CI verdict (that is the runner's job)
"""

from __future__ import annotations

import asyncio
import faulthandler
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from codec_guardrails.config import HarnessConfig, Severity
from codec_guardrails.errors import GuardrailError
from codec_guardrails.monitoring import (
    MetricSample,
    StructuredLogger,
    configure_logging,
    get_logger,
)
from codec_guardrails.target import CodecTarget, EncodedChunk, VideoEncoderLike, load_target

EXIT_PASSED = 0
EXIT_FAILED = 1


class VerdictStatus(Enum):
    """Outcome of one guardrail run, as decided inside its process."""

    PASSED = "passed"
    WARNED = "warned"
    FAILED = "failed"


class BreachKind(Enum):
    """Why a verdict is not a clean pass."""

    THRESHOLD = "threshold"
    """Measured metric violated a blocking limit."""

    ADVISORY = "advisory"
    """Measured metric violated a non-blocking limit."""

    MALFORMED_INPUT_ACCEPTED = "malformed_input_accepted"
    """A fuzz vector that must be rejected was accepted."""


@dataclass(frozen=True)
class Breach:
    """A single limit violation."""

    kind: BreachKind
    metric: str
    measured: float | None = None
    limit: float | None = None
    detail: str = ""


@dataclass
class GuardrailVerdict:
    """Verdict of one guardrail run.

    Attributes:
        guardrail: Guardrail name.
        status: PASSED, WARNED or FAILED.
        message: One-line summary for the log.
        breaches: Limit violations behind a WARNED/FAILED status.
        samples: The samples the verdict was derived from.
    """

    guardrail: str
    status: VerdictStatus
    message: str
    breaches: list[Breach] = field(default_factory=list)
    samples: list[MetricSample] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.status != VerdictStatus.FAILED

    @property
    def exit_code(self) -> int:
        return EXIT_PASSED if self.passed else EXIT_FAILED


class ChunkSink:
    """Output/error callbacks for an encoder under measurement.

    Chunks are counted and dropped immediately so encoder output never
    accumulates in the guardrail process. With raise_errors=True an error
    delivered to on_error is re-raised into the guardrail, making it the
    guardrail's terminal failure.
    """

    def __init__(self, raise_errors: bool = True):
        self.raise_errors = raise_errors
        self.chunks = 0
        self.key_chunks = 0
        self.bytes = 0
        self.errors: list[Exception] = []

    def on_chunk(self, chunk: EncodedChunk) -> None:
        self.chunks += 1
        self.bytes += chunk.byte_length
        if chunk.is_key:
            self.key_chunks += 1

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)
        if self.raise_errors:
            raise error


class Guardrail(ABC):
    """Base class for guardrails.

    Subclasses set `name`/`title`, implement measure() to exercise the
    target and return samples, and evaluate() to turn samples into a
    verdict.
    """

    name: ClassVar[str] = ""
    title: ClassVar[str] = ""

    def __init__(
        self,
        target: CodecTarget,
        *,
        severity: Severity = Severity.BLOCKING,
        logger: StructuredLogger | None = None,
    ):
        self.target = target
        self.severity = severity
        self.logger = logger or get_logger().bind(guardrail=self.name)

    @abstractmethod
    async def measure(self) -> list[MetricSample]:
        """Exercise the target and return the samples collected."""
        ...

    @abstractmethod
    def evaluate(self, samples: list[MetricSample]) -> GuardrailVerdict:
        """Derive the verdict from samples. Must not touch the target."""
        ...

    def run(self) -> GuardrailVerdict:
        """Measure on a fresh event loop, evaluate and report."""
        samples = asyncio.run(self.measure())
        verdict = self.evaluate(samples)
        self.report(verdict)
        return verdict

    def create_encoder(self, sink: ChunkSink) -> VideoEncoderLike:
        return self.target.create_encoder(sink.on_chunk, sink.on_error)

    def threshold_verdict(
        self,
        samples: list[MetricSample],
        *,
        metric: str,
        measured: float,
        limit: float,
        breached: bool,
        summary: str,
        detail: str = "",
    ) -> GuardrailVerdict:
        """Verdict for a single-metric guardrail, honouring its severity."""
        if not breached:
            return GuardrailVerdict(self.name, VerdictStatus.PASSED, summary, samples=samples)

        if self.severity == Severity.ADVISORY:
            breach = Breach(BreachKind.ADVISORY, metric, measured, limit, detail)
            return GuardrailVerdict(
                self.name, VerdictStatus.WARNED, summary, [breach], samples
            )

        breach = Breach(BreachKind.THRESHOLD, metric, measured, limit, detail)
        return GuardrailVerdict(self.name, VerdictStatus.FAILED, summary, [breach], samples)

    def report(self, verdict: GuardrailVerdict) -> None:
        """Log the verdict the way CI readers expect it."""
        for breach in verdict.breaches:
            data = {"metric": breach.metric}
            if breach.measured is not None:
                data["measured"] = round(breach.measured, 3)
            if breach.limit is not None:
                data["limit"] = breach.limit
            if breach.kind == BreachKind.ADVISORY:
                self.logger.warning("advisory_breach", f"WARNING: {breach.detail}", **data)
            else:
                self.logger.error(breach.kind.value, f"FAILURE: {breach.detail}", **data)

        if verdict.status == VerdictStatus.FAILED:
            self.logger.error("verdict", f"FAILURE: {verdict.message}", status=verdict.status.value)
        elif verdict.status == VerdictStatus.WARNED:
            self.logger.warning("verdict", verdict.message, status=verdict.status.value)
        else:
            self.logger.info("verdict", f"SUCCESS: {verdict.message}", status=verdict.status.value)


def run_guardrail(guardrail_cls: type[Guardrail]) -> int:
    """Process entry point for a guardrail module.

    Loads configuration and the codec target from the environment, runs the
    guardrail once and returns its exit code. Any unexpected error is
    logged and becomes exit code 1.
    """
    if not faulthandler.is_enabled():
        faulthandler.enable()

    try:
        config = HarnessConfig.from_env()
    except GuardrailError as exc:
        get_logger().bind(guardrail=guardrail_cls.name).exception(exc)
        return EXIT_FAILED

    logger = configure_logging(
        config.log_level,
        json_format=config.log_format == "json",
    ).bind(guardrail=guardrail_cls.name)
    logger.info("start", guardrail_cls.title or guardrail_cls.name, target=config.target)

    try:
        target = load_target(config.target)
        guardrail = guardrail_cls(
            target,
            severity=config.severity_for(guardrail_cls.name),
            logger=logger,
        )
        verdict = guardrail.run()
    except Exception as exc:
        logger.exception(exc)
        return EXIT_FAILED

    return verdict.exit_code
