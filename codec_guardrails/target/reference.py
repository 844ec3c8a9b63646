"""
Reference Target - numpy-backed codec implementing the target contract.

Used when no real encoding library is configured, and as the conformance
baseline for the guardrails themselves. It is not a production encoder:
frames are reduced to luma and deflated, with delta frames stored as the
wrapped difference from the previous frame.

Behaviour that the guardrails rely on:
    - VideoFrame validates buffer, dimensions and timestamp up front
    - VideoEncoder holds a short lookahead queue, so output lags input by
      a couple of frames until flush() drains it
    - encode() does its work on the calling thread
"""

from __future__ import annotations

import asyncio
import logging
import zlib
from collections import deque
from dataclasses import dataclass
from typing import Any

import numpy as np

from codec_guardrails.target.base import (
    BYTES_PER_PIXEL,
    FRAME_DURATION_US,
    ChunkCallback,
    CodecTarget,
    EncodedChunk,
    EncoderConfig,
    ErrorCallback,
)
from codec_guardrails.target.errors import EncodingError, InvalidStateError

logger = logging.getLogger(__name__)

MAX_DIMENSION = 16384

SUPPORTED_CODEC_PREFIXES = ("avc1", "avc3", "hvc1", "hev1", "vp8", "vp09", "av01")


def _check_dimension(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if not 1 <= value <= MAX_DIMENSION:
        raise ValueError(f"{name} must be in 1..{MAX_DIMENSION}, got {value}")
    return value


class VideoFrame:
    """An RGBA frame over a caller-owned pixel buffer.

    The frame references the buffer rather than copying it. close() drops
    the reference; the frame cannot be used afterwards.

    Example:
        buf = np.zeros(640 * 480 * 4, dtype=np.uint8)
        with VideoFrame(buf, coded_width=640, coded_height=480, timestamp=0) as frame:
            encoder.encode(frame)
    """

    def __init__(
        self,
        data: Any,
        *,
        coded_width: int,
        coded_height: int,
        timestamp: int,
    ):
        width = _check_dimension("coded_width", coded_width)
        height = _check_dimension("coded_height", coded_height)

        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise TypeError(f"timestamp must be an integer, got {type(timestamp).__name__}")
        if timestamp < 0:
            raise ValueError(f"timestamp must be non-negative, got {timestamp}")

        try:
            view = memoryview(data)
        except TypeError:
            raise TypeError(
                f"data must be a bytes-like object, got {type(data).__name__}"
            ) from None

        if view.nbytes == 0:
            raise ValueError("data is empty")

        required = width * height * BYTES_PER_PIXEL
        if view.nbytes < required:
            raise ValueError(
                f"data is too small for {width}x{height} RGBA: "
                f"{view.nbytes} bytes < {required} bytes"
            )

        self._pixels: np.ndarray | None = np.frombuffer(view, dtype=np.uint8, count=required)
        self._width = width
        self._height = height
        self._timestamp = timestamp

    @property
    def coded_width(self) -> int:
        return self._width

    @property
    def coded_height(self) -> int:
        return self._height

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @property
    def closed(self) -> bool:
        return self._pixels is None

    def pixels(self) -> np.ndarray:
        """Pixel data as a (height, width, 4) uint8 view."""
        if self._pixels is None:
            raise InvalidStateError("VideoFrame is closed", state="closed")
        return self._pixels.reshape(self._height, self._width, BYTES_PER_PIXEL)

    def close(self) -> None:
        """Release the buffer reference. Safe to call more than once."""
        self._pixels = None

    def __enter__(self) -> "VideoFrame":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return (
            f"VideoFrame({self._width}x{self._height}, "
            f"timestamp={self._timestamp}, {state})"
        )


@dataclass
class _PendingFrame:
    luma: np.ndarray
    timestamp: int
    key_frame: bool


def rgba_to_luma(pixels: np.ndarray) -> np.ndarray:
    """BT.601 luma approximation in fixed point, returned as uint8."""
    rgb = pixels[..., :3].astype(np.uint16)
    luma = (rgb[..., 0] * 77 + rgb[..., 1] * 150 + rgb[..., 2] * 29) >> 8
    return luma.astype(np.uint8)


class VideoEncoder:
    """Reference video encoder.

    States: "unconfigured" -> configure() -> "configured" -> close() -> "closed".

    Args:
        on_chunk: Called with each EncodedChunk.
        on_error: Called with an EncodingError when encoding fails.
            The encoder is closed afterwards.
        lookahead: Frames held back before output is emitted.
        key_frame_interval: Maximum distance between key frames.
    """

    LOOKAHEAD = 2
    KEY_FRAME_INTERVAL = 30

    def __init__(
        self,
        on_chunk: ChunkCallback,
        on_error: ErrorCallback,
        *,
        lookahead: int = LOOKAHEAD,
        key_frame_interval: int = KEY_FRAME_INTERVAL,
    ):
        if not callable(on_chunk) or not callable(on_error):
            raise TypeError("on_chunk and on_error must be callable")
        if lookahead < 0:
            raise ValueError("lookahead must be >= 0")
        if key_frame_interval < 1:
            raise ValueError("key_frame_interval must be >= 1")

        self._on_chunk = on_chunk
        self._on_error = on_error
        self._lookahead = lookahead
        self._key_frame_interval = key_frame_interval

        self._state = "unconfigured"
        self._config: EncoderConfig | None = None
        self._queue: deque[_PendingFrame] = deque()
        self._previous: np.ndarray | None = None
        self._since_key = 0
        self._frames_encoded = 0

    @property
    def state(self) -> str:
        return self._state

    @property
    def encode_queue_size(self) -> int:
        """Frames submitted but not yet emitted."""
        return len(self._queue)

    @property
    def frames_encoded(self) -> int:
        return self._frames_encoded

    def configure(self, config: EncoderConfig) -> None:
        """Apply a configuration. Reconfiguring starts a new key frame sequence."""
        if self._state == "closed":
            raise InvalidStateError("Cannot configure a closed encoder", state=self._state)
        if not isinstance(config, EncoderConfig):
            raise TypeError("config must be an EncoderConfig")
        if not isinstance(config.codec, str) or not config.codec.lower().startswith(
            SUPPORTED_CODEC_PREFIXES
        ):
            raise ValueError(f"Unsupported codec: {config.codec!r}")
        _check_dimension("width", config.width)
        _check_dimension("height", config.height)
        if config.bitrate is not None and config.bitrate <= 0:
            raise ValueError("bitrate must be positive")

        self._config = config
        self._queue.clear()
        self._previous = None
        self._since_key = 0
        self._state = "configured"
        logger.debug("Encoder configured: %s %dx%d", config.codec, config.width, config.height)

    def encode(self, frame: Any, key_frame: bool = False) -> None:
        """Submit a frame. The frame may be closed as soon as this returns."""
        config = self._require_configured()
        if not isinstance(frame, VideoFrame):
            raise TypeError(f"frame must be a VideoFrame, got {type(frame).__name__}")
        if frame.closed:
            raise InvalidStateError("Cannot encode a closed VideoFrame", state="closed")
        if (frame.coded_width, frame.coded_height) != (config.width, config.height):
            raise ValueError(
                f"frame size {frame.coded_width}x{frame.coded_height} does not match "
                f"configured size {config.width}x{config.height}"
            )

        self._queue.append(
            _PendingFrame(
                luma=rgba_to_luma(frame.pixels()),
                timestamp=frame.timestamp,
                key_frame=key_frame,
            )
        )
        while len(self._queue) > self._lookahead and self._state == "configured":
            self._emit(self._queue.popleft())

    async def flush(self) -> None:
        """Emit every queued frame, yielding to the event loop between frames."""
        self._require_configured()
        while self._queue and self._state == "configured":
            self._emit(self._queue.popleft())
            await asyncio.sleep(0)
        await asyncio.sleep(0)

    def close(self) -> None:
        """Discard pending work and release encoder state."""
        if self._state != "closed":
            logger.debug(
                "Encoder closed after %d frames (%d pending discarded)",
                self._frames_encoded,
                len(self._queue),
            )
        self._state = "closed"
        self._queue.clear()
        self._previous = None
        self._config = None

    def _require_configured(self) -> EncoderConfig:
        if self._state != "configured" or self._config is None:
            raise InvalidStateError(f"Encoder is {self._state}", state=self._state)
        return self._config

    def _emit(self, pending: _PendingFrame) -> None:
        is_key = (
            pending.key_frame
            or self._previous is None
            or self._since_key >= self._key_frame_interval
        )
        if is_key:
            payload = pending.luma
        else:
            payload = np.subtract(pending.luma, self._previous, dtype=np.uint8)

        try:
            data = zlib.compress(payload.tobytes(), 1)
        except (zlib.error, MemoryError) as exc:
            self.close()
            self._on_error(
                EncodingError(
                    f"Failed to encode frame: {exc}",
                    timestamp=pending.timestamp,
                    details={"type": type(exc).__name__},
                )
            )
            return

        self._previous = pending.luma
        self._since_key = 1 if is_key else self._since_key + 1
        self._frames_encoded += 1

        self._on_chunk(
            EncodedChunk(
                type="key" if is_key else "delta",
                timestamp=pending.timestamp,
                data=data,
                duration=FRAME_DURATION_US,
                metadata={"codec": self._config.codec if self._config else ""},
            )
        )


def create_target() -> CodecTarget:
    """The reference codec as a CodecTarget."""
    return CodecTarget(
        name="reference",
        encoder_factory=VideoEncoder,
        frame_factory=VideoFrame,
    )
