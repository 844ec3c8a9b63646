"""
Throughput Benchmark - Encoding must keep up with real-time 720p.

Usage:
    python -X faulthandler -m codec_guardrails.guardrails throughput
"""

from __future__ import annotations

import time

import numpy as np

from codec_guardrails.guardrails.base import (
    ChunkSink,
    Guardrail,
    GuardrailVerdict,
    VerdictStatus,
)
from codec_guardrails.monitoring import MetricSample, last
from codec_guardrails.target import (
    FRAME_DURATION_US,
    CodecTarget,
    EncoderConfig,
    frame_buffer_size,
)

TARGET_FPS = 30.0
FRAMES = 100

WIDTH = 1280
HEIGHT = 720
CODEC = "avc1.42001E"


class ThroughputBenchmark(Guardrail):
    """frames / elapsed seconds (submit + flush) must reach TARGET_FPS."""

    name = "throughput"
    title = "Throughput Benchmark"

    def __init__(
        self,
        target: CodecTarget,
        *,
        frames: int = FRAMES,
        target_fps: float = TARGET_FPS,
        width: int = WIDTH,
        height: int = HEIGHT,
        **kwargs,
    ):
        super().__init__(target, **kwargs)
        if frames < 1:
            raise ValueError("frames must be >= 1")
        self.frames = frames
        self.target_fps = target_fps
        self.width = width
        self.height = height

    async def measure(self) -> list[MetricSample]:
        self.logger.info(
            "config",
            f"Performance Benchmark (Target: {self.target_fps:g} FPS at {self.width}x{self.height})",
        )
        sink = ChunkSink()
        encoder = self.create_encoder(sink)
        encoder.configure(EncoderConfig(codec=CODEC, width=self.width, height=self.height))
        buf = np.zeros(frame_buffer_size(self.width, self.height), dtype=np.uint8)

        self.logger.info("encode", f"Encoding {self.frames} frames...")
        start = time.perf_counter()
        for i in range(self.frames):
            frame = self.target.create_frame(
                buf,
                coded_width=self.width,
                coded_height=self.height,
                timestamp=i * FRAME_DURATION_US,
            )
            encoder.encode(frame)
            frame.close()
        await encoder.flush()
        elapsed = time.perf_counter() - start
        encoder.close()

        fps = self.frames / elapsed if elapsed > 0 else float("inf")
        self.logger.info(
            "result",
            f"Result: {fps:.2f} FPS ({elapsed:.2f}s for {self.frames} frames)",
            chunks=sink.chunks,
            key_chunks=sink.key_chunks,
            bytes=sink.bytes,
        )
        return [
            MetricSample("elapsed_s", elapsed, unit="s"),
            MetricSample("fps", fps, unit="fps"),
        ]

    def evaluate(self, samples: list[MetricSample]) -> GuardrailVerdict:
        sample = last(samples, "fps")
        if sample is None:
            return GuardrailVerdict(
                self.name, VerdictStatus.FAILED, "No throughput sample was recorded", samples=samples
            )
        fps = sample.value
        return self.threshold_verdict(
            samples,
            metric="fps",
            measured=fps,
            limit=self.target_fps,
            breached=fps < self.target_fps,
            summary=f"{fps:.2f} FPS (Target: {self.target_fps:g} FPS)",
            detail=f"Too slow ({fps:.2f} FPS < {self.target_fps:g} FPS target)",
        )

