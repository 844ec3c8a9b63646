"""
Shared fixtures for codec-guardrails tests.

Provides:
    - The bundled reference codec target
    - Fake targets that accept everything, reject through the error callback,
      or block the calling thread
    - A logger writing to an in-memory stream

Registers markers for:
    - slow: tests that spawn guardrail processes
    - memory: memory growth tests
    - latency: event-loop lag tests
"""

from __future__ import annotations

import io
import time

import pytest

from codec_guardrails.monitoring import LogLevel, StructuredLogger
from codec_guardrails.target import CodecTarget, frame_buffer_size
from codec_guardrails.target.reference import create_target


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests that spawn guardrail processes")
    config.addinivalue_line("markers", "memory: marks tests as memory tests")
    config.addinivalue_line("markers", "latency: marks tests as latency tests")


# =============================================================================
# Fake codec targets
# =============================================================================

class PermissiveFrame:
    """Frame that stores whatever it is given without validation."""

    def __init__(self, data, *, coded_width, coded_height, timestamp):
        self.data = data
        self.coded_width = coded_width
        self.coded_height = coded_height
        self.timestamp = timestamp
        self.closed = False

    def close(self):
        self.closed = True


class PermissiveEncoder:
    """Encoder that accepts every frame and never reports an error."""

    instances = 0

    def __init__(self, on_chunk, on_error):
        type(self).instances += 1
        self.on_chunk = on_chunk
        self.on_error = on_error
        self.state = "unconfigured"
        self.encoded = 0

    def configure(self, config):
        self.state = "configured"

    def encode(self, frame):
        self.encoded += 1

    async def flush(self):
        pass

    def close(self):
        self.state = "closed"


class CallbackRejectingEncoder(PermissiveEncoder):
    """Reports invalid frames through on_error and closes itself."""

    def encode(self, frame):
        problem = self._problem(frame)
        if problem:
            self.close()
            self.on_error(ValueError(problem))
            return
        self.encoded += 1

    @staticmethod
    def _problem(frame):
        if frame.coded_width <= 0 or frame.coded_height <= 0:
            return "dimensions must be positive"
        if frame.timestamp < 0:
            return "timestamp must be non-negative"
        if len(frame.data) < frame_buffer_size(frame.coded_width, frame.coded_height):
            return "buffer too small"
        return ""


class SlowEncoder(PermissiveEncoder):
    """Does 50ms of synchronous work per frame on the calling thread."""

    def encode(self, frame):
        time.sleep(0.05)
        self.encoded += 1


@pytest.fixture
def reference_target() -> CodecTarget:
    return create_target()


@pytest.fixture
def permissive_target() -> CodecTarget:
    PermissiveEncoder.instances = 0
    return CodecTarget("permissive", PermissiveEncoder, PermissiveFrame)


@pytest.fixture
def callback_target() -> CodecTarget:
    CallbackRejectingEncoder.instances = 0
    return CodecTarget("callback", CallbackRejectingEncoder, PermissiveFrame)


@pytest.fixture
def slow_target() -> CodecTarget:
    return CodecTarget("slow", SlowEncoder, PermissiveFrame)


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def quiet_logger(log_stream) -> StructuredLogger:
    return StructuredLogger("test", level=LogLevel.DEBUG, output=log_stream)
