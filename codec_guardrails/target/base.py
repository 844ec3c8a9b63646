"""
Target Base - Capability surface of the encoding library under test.

Guardrails treat the encoding library as a black box. Everything they
need from it is described here:

TARGET CONTRACT:
    A target module MUST expose:
        - VideoFrame(data, *, coded_width, coded_height, timestamp)
            Wraps a raw RGBA pixel buffer. May raise on invalid input.
            close() releases the underlying resources synchronously.
        - VideoEncoder(on_chunk, on_error)
            configure(EncoderConfig), encode(frame, key_frame=False),
            async flush(), close(), and a `state` attribute.

    Errors surface in one of three ways:
        - raised synchronously from VideoFrame() or encode()
        - delivered to the on_error callback
        - abnormal process termination (always a failure)

    Every on_chunk call for frames submitted before flush() MUST happen
    before flush() returns. No other ordering is promised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

ChunkCallback = Callable[["EncodedChunk"], None]
ErrorCallback = Callable[[Exception], None]

# RGBA, one byte per channel
BYTES_PER_PIXEL = 4

# ~30fps in microseconds
FRAME_DURATION_US = 33000


@dataclass(frozen=True)
class EncoderConfig:
    """Encoder configuration.

    Attributes:
        codec: Codec string (e.g., "avc1.42001E").
        width: Coded width in pixels.
        height: Coded height in pixels.
        bitrate: Target bitrate in bits/s, or None for the codec default.
    """

    codec: str
    width: int
    height: int
    bitrate: int | None = None


@dataclass
class EncodedChunk:
    """A unit of encoder output."""

    type: str
    timestamp: int
    data: bytes
    duration: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def byte_length(self) -> int:
        return len(self.data)

    @property
    def is_key(self) -> bool:
        return self.type == "key"


@runtime_checkable
class VideoFrameLike(Protocol):
    """Protocol for frames accepted by an encoder."""

    @property
    def coded_width(self) -> int:
        ...

    @property
    def coded_height(self) -> int:
        ...

    @property
    def timestamp(self) -> int:
        ...

    def close(self) -> None:
        """Release the frame's buffer reference."""
        ...


@runtime_checkable
class VideoEncoderLike(Protocol):
    """Protocol for video encoders."""

    @property
    def state(self) -> str:
        """One of "unconfigured", "configured", "closed"."""
        ...

    def configure(self, config: EncoderConfig) -> None:
        ...

    def encode(self, frame: Any, key_frame: bool = False) -> None:
        ...

    async def flush(self) -> None:
        ...

    def close(self) -> None:
        ...


@dataclass(frozen=True)
class CodecTarget:
    """A loaded encoding library, reduced to the two constructors guardrails use.

    Example:
        target = load_target("reference")
        encoder = target.create_encoder(on_chunk=chunks.append, on_error=errors.append)
        encoder.configure(EncoderConfig(codec="avc1.42001E", width=640, height=480))
        frame = target.create_frame(buf, coded_width=640, coded_height=480, timestamp=0)
    """

    name: str
    encoder_factory: Callable[[ChunkCallback, ErrorCallback], VideoEncoderLike]
    frame_factory: Callable[..., VideoFrameLike]

    def create_encoder(
        self,
        on_chunk: ChunkCallback,
        on_error: ErrorCallback,
    ) -> VideoEncoderLike:
        """Construct an (unconfigured) encoder wired to the given callbacks."""
        return self.encoder_factory(on_chunk, on_error)

    def create_frame(
        self,
        data: Any,
        *,
        coded_width: int,
        coded_height: int,
        timestamp: int,
    ) -> VideoFrameLike:
        """Construct a frame over `data`. Invalid input may raise here."""
        return self.frame_factory(
            data,
            coded_width=coded_width,
            coded_height=coded_height,
            timestamp=timestamp,
        )


def frame_buffer_size(width: int, height: int) -> int:
    """Byte size of an RGBA frame buffer."""
    return width * height * BYTES_PER_PIXEL
