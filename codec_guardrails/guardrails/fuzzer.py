"""
Input Fuzzer - Malformed input must be rejected through a catchable error.

Each vector breaks exactly one dimension of validity (buffer size,
dimensions, sign), so a fix in one place cannot hide a gap in another.
A vector passes when frame construction or encode() raises, or when the
encoder reports it through its error callback. Completing silently means
bad data reached the encoder.

Reaching the end of this process at all is the other half of the check:
a native crash on any vector kills the process, which the runner records
as a crash.

Usage:
    python -X faulthandler -m codec_guardrails.guardrails fuzzer
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from codec_guardrails.config import Severity
from codec_guardrails.guardrails.base import (
    Breach,
    BreachKind,
    ChunkSink,
    Guardrail,
    GuardrailVerdict,
    VerdictStatus,
)
from codec_guardrails.monitoring import MetricSample, select
from codec_guardrails.target import CodecTarget, EncoderConfig, VideoEncoderLike, frame_buffer_size

WIDTH = 100
HEIGHT = 100
CODEC = "avc1.42001E"


@dataclass(frozen=True)
class FuzzVector:
    """One deliberately malformed (or borderline) frame description."""

    name: str
    size: int
    width: int
    height: int
    timestamp: int = 0

    def buffer(self) -> np.ndarray:
        return np.zeros(self.size, dtype=np.uint8)


MUST_REJECT_VECTORS: tuple[FuzzVector, ...] = (
    FuzzVector("Zero Buffer", 0, 100, 100),
    FuzzVector("Tiny Buffer", 10, 100, 100),
    FuzzVector("Huge Dimensions", 100, 10000, 10000),
    FuzzVector("Negative Timestamp", 40000, 100, 100, timestamp=-1),
    FuzzVector("Zero Width", 400, 0, 100),
    FuzzVector("Zero Height", 400, 100, 0),
    FuzzVector("Negative Width", 400, -10, 100),
)

# Well-formed frames whose size differs from the encoder configuration.
# Rejecting or handling them are both acceptable; only the outcome is logged.
EDGE_CASE_VECTORS: tuple[FuzzVector, ...] = (
    FuzzVector("Larger Than Configured", frame_buffer_size(200, 200), 200, 200),
    FuzzVector("Smaller Than Configured", frame_buffer_size(50, 50), 50, 50),
)


class InputFuzzer(Guardrail):
    """Every must-reject vector has to produce a structured error."""

    name = "fuzzer"
    title = "Input Fuzzer"

    def __init__(
        self,
        target: CodecTarget,
        *,
        vectors: tuple[FuzzVector, ...] = MUST_REJECT_VECTORS,
        edge_cases: tuple[FuzzVector, ...] = EDGE_CASE_VECTORS,
        **kwargs,
    ):
        super().__init__(target, **kwargs)
        self.vectors = vectors
        self.edge_cases = edge_cases
        self._sink = ChunkSink(raise_errors=False)
        self._encoder: VideoEncoderLike | None = None

    def _configured_encoder(self) -> VideoEncoderLike:
        # A real target may close itself after reporting an error; later
        # vectors must not be "rejected" merely because the encoder is closed.
        if self._encoder is None or self._encoder.state == "closed":
            self._encoder = self.create_encoder(self._sink)
            self._encoder.configure(EncoderConfig(codec=CODEC, width=WIDTH, height=HEIGHT))
        return self._encoder

    def _submit(self, vector: FuzzVector) -> tuple[bool, str, str]:
        """Try one vector. Returns (rejected, via, reason)."""
        encoder = self._configured_encoder()
        errors_before = len(self._sink.errors)
        frame = None
        try:
            frame = self.target.create_frame(
                vector.buffer(),
                coded_width=vector.width,
                coded_height=vector.height,
                timestamp=vector.timestamp,
            )
            encoder.encode(frame)
        except Exception as exc:
            return True, "exception", f"{type(exc).__name__}: {exc}"
        finally:
            if frame is not None:
                frame.close()

        if len(self._sink.errors) > errors_before:
            error = self._sink.errors[-1]
            return True, "callback", f"{type(error).__name__}: {error}"
        return False, "none", ""

    async def measure(self) -> list[MetricSample]:
        self.logger.info("config", "Input Robustness Fuzzer", vectors=len(self.vectors))
        samples: list[MetricSample] = []

        self.logger.info("section", "--- Must Reject (Invalid Inputs) ---")
        for vector in self.vectors:
            rejected, via, reason = self._submit(vector)
            samples.append(
                MetricSample(
                    "rejected",
                    1.0 if rejected else 0.0,
                    labels={"vector": vector.name, "set": "must_reject", "via": via},
                )
            )
            if rejected:
                self.logger.info(
                    "vector_rejected",
                    f'PASS: Caught error for "{vector.name}": {reason[:80]}',
                    via=via,
                )
            else:
                self.logger.error(
                    "vector_accepted",
                    f'FAIL: Accepted "{vector.name}" without error!',
                )

        self.logger.info("section", "--- Edge Cases (Informational) ---")
        for vector in self.edge_cases:
            rejected, via, reason = self._submit(vector)
            samples.append(
                MetricSample(
                    "rejected",
                    1.0 if rejected else 0.0,
                    labels={"vector": vector.name, "set": "edge_case", "via": via},
                )
            )
            if rejected:
                self.logger.info("edge_case", f'INFO: Rejected "{vector.name}": {reason[:80]}')
            else:
                self.logger.info("edge_case", f'INFO: Accepted "{vector.name}"')

        encoder = self._configured_encoder()
        try:
            await encoder.flush()
        except Exception as exc:
            self.logger.info("flush", f"INFO: flush after edge cases raised {type(exc).__name__}: {exc}")
        finally:
            encoder.close()
            self._encoder = None

        return samples

    def evaluate(self, samples: list[MetricSample]) -> GuardrailVerdict:
        must_reject = select(samples, "rejected", set="must_reject")
        accepted = [s for s in must_reject if s.value == 0.0]
        rejected_count = len(must_reject) - len(accepted)
        summary = f"{rejected_count}/{len(must_reject)} invalid inputs rejected"

        if not accepted:
            return GuardrailVerdict(
                self.name,
                VerdictStatus.PASSED,
                f"All malformed inputs rejected safely. {summary}",
                samples=samples,
            )

        advisory = self.severity == Severity.ADVISORY
        breaches = [
            Breach(
                BreachKind.ADVISORY if advisory else BreachKind.MALFORMED_INPUT_ACCEPTED,
                metric="rejected",
                detail=f'Malformed input "{s.labels["vector"]}" was accepted',
            )
            for s in accepted
        ]
        return GuardrailVerdict(
            self.name,
            VerdictStatus.WARNED if advisory else VerdictStatus.FAILED,
            f"Some malformed inputs were accepted! {summary}",
            breaches,
            samples,
        )

