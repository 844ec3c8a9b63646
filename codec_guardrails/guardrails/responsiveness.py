"""
Responsiveness Watchdog - Detect encode work that starves the event loop.

A heartbeat is scheduled on the guardrail's event loop every 10ms while
frames are submitted back-to-back and flushed. Each firing records how
late it ran; if encode() does its work synchronously on the loop thread,
heartbeats cannot fire and the lag shows up here.

The limit is advisory by default: a breach is logged with a
recommendation, and the guardrail still exits 0. Set
GUARDRAILS_SEVERITY_RESPONSIVENESS=blocking to make it fail instead.

Usage:
    python -X faulthandler -m codec_guardrails.guardrails responsiveness
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import numpy as np

from codec_guardrails.config import Severity
from codec_guardrails.guardrails.base import (
    ChunkSink,
    Guardrail,
    GuardrailVerdict,
)
from codec_guardrails.monitoring import MetricSample, peak, select
from codec_guardrails.target import (
    FRAME_DURATION_US,
    CodecTarget,
    EncoderConfig,
    frame_buffer_size,
)

MAX_LAG_MS = 20.0
HEARTBEAT_INTERVAL_MS = 10.0
FRAMES = 50

WIDTH = 1920
HEIGHT = 1080
CODEC = "avc1.42001E"


class Heartbeat:
    """Periodic timer measuring its own lateness.

    Each firing records `elapsed - interval` (clamped at zero) as a
    "tick_lag_ms" sample. The sample is labelled with the phase that was
    active when the interval began, so a stall is charged to the work that
    caused it even if the late tick only runs after the phase changed.

    stop() takes one closing measurement, so a stall immediately before
    stop() is not lost.

    Example:
        heartbeat = Heartbeat(interval_ms=10)
        heartbeat.start(phase="submit")
        ...
        heartbeat.mark("flush")
        await encoder.flush()
        heartbeat.stop()
        print(heartbeat.max_lag_ms)
    """

    def __init__(
        self,
        interval_ms: float = HEARTBEAT_INTERVAL_MS,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self.interval_ms = interval_ms
        self._clock = clock
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._last: float = 0.0
        self._phase = "idle"
        self._interval_phase = "idle"
        self.samples: list[MetricSample] = []

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def max_lag_ms(self) -> float:
        return peak(self.samples, "tick_lag_ms")

    @property
    def ticks(self) -> int:
        return len(self.samples)

    def start(self, phase: str = "run") -> None:
        """Start ticking on the running event loop."""
        if self.running:
            raise RuntimeError("Heartbeat already running")
        self._loop = asyncio.get_running_loop()
        self._phase = self._interval_phase = phase
        self._last = self._clock()
        self._schedule()

    def mark(self, phase: str) -> None:
        """Switch the phase label for intervals starting from now on."""
        self._phase = phase

    def stop(self) -> None:
        """Cancel the timer and take the closing measurement."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        self._record()

    def _schedule(self) -> None:
        assert self._loop is not None
        self._handle = self._loop.call_later(self.interval_ms / 1000, self._tick)

    def _tick(self) -> None:
        self._record()
        self._schedule()

    def _record(self) -> None:
        now = self._clock()
        elapsed_ms = (now - self._last) * 1000
        lag_ms = max(0.0, elapsed_ms - self.interval_ms)
        self.samples.append(
            MetricSample(
                "tick_lag_ms",
                lag_ms,
                unit="ms",
                timestamp=now,
                labels={"phase": self._interval_phase},
            )
        )
        self._last = now
        self._interval_phase = self._phase


class ResponsivenessWatchdog(Guardrail):
    """Max heartbeat lag while encoding at 1080p should stay under MAX_LAG_MS."""

    name = "responsiveness"
    title = "Responsiveness Watchdog"

    def __init__(
        self,
        target: CodecTarget,
        *,
        frames: int = FRAMES,
        max_lag_ms: float = MAX_LAG_MS,
        interval_ms: float = HEARTBEAT_INTERVAL_MS,
        width: int = WIDTH,
        height: int = HEIGHT,
        severity: Severity = Severity.ADVISORY,
        **kwargs,
    ):
        super().__init__(target, severity=severity, **kwargs)
        self.frames = frames
        self.max_lag_ms = max_lag_ms
        self.interval_ms = interval_ms
        self.width = width
        self.height = height

    async def measure(self) -> list[MetricSample]:
        self.logger.info(
            "config",
            f"Event Loop Latency Check ({self.frames} frames at {self.width}x{self.height})",
            interval_ms=self.interval_ms,
            limit_ms=self.max_lag_ms,
        )

        sink = ChunkSink()
        encoder = self.create_encoder(sink)
        encoder.configure(EncoderConfig(codec=CODEC, width=self.width, height=self.height))
        buf = np.zeros(frame_buffer_size(self.width, self.height), dtype=np.uint8)

        heartbeat = Heartbeat(self.interval_ms)
        heartbeat.start(phase="submit")
        try:
            for i in range(self.frames):
                frame = self.target.create_frame(
                    buf,
                    coded_width=self.width,
                    coded_height=self.height,
                    timestamp=i * FRAME_DURATION_US,
                )
                encoder.encode(frame)
                frame.close()

            heartbeat.mark("flush")
            await encoder.flush()
        finally:
            heartbeat.stop()
            encoder.close()

        for phase in ("submit", "flush"):
            self.logger.info(
                "phase_lag",
                f"Max lag during {phase}: {peak(heartbeat.samples, 'tick_lag_ms', phase=phase):.2f}ms",
                phase=phase,
                ticks=len(select(heartbeat.samples, "tick_lag_ms", phase=phase)),
            )

        return heartbeat.samples

    def evaluate(self, samples: list[MetricSample]) -> GuardrailVerdict:
        max_lag = peak(samples, "tick_lag_ms")
        breached = max_lag > self.max_lag_ms
        if breached:
            summary = (
                f"Max Event Loop Lag: {max_lag:.2f}ms (Limit: {self.max_lag_ms:g}ms). "
                "ACTION REQUIRED: Move encoding to a background worker for production use."
            )
        else:
            summary = (
                f"Non-blocking execution. Max Event Loop Lag: {max_lag:.2f}ms "
                f"(Limit: {self.max_lag_ms:g}ms)"
            )
        return self.threshold_verdict(
            samples,
            metric="tick_lag_ms",
            measured=max_lag,
            limit=self.max_lag_ms,
            breached=breached,
            summary=summary,
            detail=f"Encoder blocking event loop. Lag: {max_lag:.2f}ms.",
        )

