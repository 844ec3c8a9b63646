"""
Memory Sentinel - Detect native memory the encoder never gives back.

Runs thousands of encode/close cycles over one reused buffer and compares
resident memory against a baseline. A full gc.collect() is forced before
every RSS sample so ordinary Python object churn is reclaimed first; what
remains is memory held below the wrapper layer (leaked frame or packet
buffers).

Usage:
    python -X faulthandler -m codec_guardrails.guardrails memory
"""

from __future__ import annotations

import numpy as np

from codec_guardrails.guardrails.base import (
    ChunkSink,
    Guardrail,
    GuardrailVerdict,
    VerdictStatus,
)
from codec_guardrails.monitoring import (
    BYTES_PER_MB,
    MetricSample,
    collect_garbage,
    last,
    resident_memory_bytes,
)
from codec_guardrails.target import (
    FRAME_DURATION_US,
    CodecTarget,
    EncoderConfig,
    frame_buffer_size,
)

LIMIT_MB = 50.0
FRAMES = 10_000
SAMPLE_INTERVAL = 1_000

# Flush periodically so the encoder's own queue cannot grow to FRAMES
# entries; buffered input is expected memory, not a leak.
FLUSH_INTERVAL = 100

WIDTH = 640
HEIGHT = 480
CODEC = "avc1.42001E"


class MemorySentinel(Guardrail):
    """RSS growth across FRAMES encode/close cycles must stay under LIMIT_MB."""

    name = "memory"
    title = "Memory Sentinel"

    def __init__(
        self,
        target: CodecTarget,
        *,
        frames: int = FRAMES,
        sample_interval: int = SAMPLE_INTERVAL,
        flush_interval: int = FLUSH_INTERVAL,
        limit_mb: float = LIMIT_MB,
        width: int = WIDTH,
        height: int = HEIGHT,
        **kwargs,
    ):
        super().__init__(target, **kwargs)
        self.frames = frames
        self.sample_interval = sample_interval
        self.flush_interval = flush_interval
        self.limit_mb = limit_mb
        self.width = width
        self.height = height

    def _rss_delta_mb(self, baseline: int) -> float:
        collect_garbage()
        return (resident_memory_bytes() - baseline) / BYTES_PER_MB

    async def measure(self) -> list[MetricSample]:
        self.logger.info(
            "config",
            f"Memory Leak Check ({self.frames} frames at {self.width}x{self.height})",
            limit_mb=self.limit_mb,
        )
        samples: list[MetricSample] = []

        collect_garbage()
        baseline = resident_memory_bytes()

        sink = ChunkSink()
        encoder = self.create_encoder(sink)
        encoder.configure(EncoderConfig(codec=CODEC, width=self.width, height=self.height))

        buf = np.zeros(frame_buffer_size(self.width, self.height), dtype=np.uint8)

        for i in range(self.frames):
            frame = self.target.create_frame(
                buf,
                coded_width=self.width,
                coded_height=self.height,
                timestamp=i * FRAME_DURATION_US,
            )
            encoder.encode(frame)
            frame.close()
            del frame

            if self.flush_interval and i % self.flush_interval == 0:
                await encoder.flush()

            if i % self.sample_interval == 0:
                delta = self._rss_delta_mb(baseline)
                samples.append(
                    MetricSample("rss_delta_mb", delta, unit="MB", labels={"frame": str(i)})
                )
                self.logger.info("rss_sample", f"Frame {i}: {delta:+.2f} MB", frame=i)

        await encoder.flush()
        encoder.close()
        del encoder

        final = self._rss_delta_mb(baseline)
        samples.append(MetricSample("rss_delta_mb", final, unit="MB", labels={"frame": "final"}))
        samples.append(MetricSample("chunks", float(sink.chunks), unit="chunks"))
        return samples

    def evaluate(self, samples: list[MetricSample]) -> GuardrailVerdict:
        final = last(samples, "rss_delta_mb", frame="final")
        if final is None:
            return GuardrailVerdict(
                self.name,
                VerdictStatus.FAILED,
                "No final RSS sample was recorded",
                samples=samples,
            )
        growth = final.value
        summary = f"Total Growth: {growth:.2f} MB (Limit: {self.limit_mb:g} MB)"
        return self.threshold_verdict(
            samples,
            metric="rss_delta_mb",
            measured=growth,
            limit=self.limit_mb,
            breached=growth > self.limit_mb,
            summary=summary,
            detail=f"Memory grew by {growth:.2f} MB. Likely leaking frame buffers.",
        )

