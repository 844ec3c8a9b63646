"""
Target module - The encoding library under test, seen as a black box.

Guardrails only ever construct encoders and frames through a CodecTarget.
The bundled reference codec is used unless GUARDRAILS_TARGET names another
library.
"""

from codec_guardrails.target.base import (
    BYTES_PER_PIXEL,
    FRAME_DURATION_US,
    CodecTarget,
    EncodedChunk,
    EncoderConfig,
    VideoEncoderLike,
    VideoFrameLike,
    frame_buffer_size,
)
from codec_guardrails.target.errors import CodecError, EncodingError, InvalidStateError
from codec_guardrails.target.loader import REFERENCE_TARGET, load_target

__all__ = [
    "BYTES_PER_PIXEL",
    "FRAME_DURATION_US",
    "CodecTarget",
    "EncodedChunk",
    "EncoderConfig",
    "VideoEncoderLike",
    "VideoFrameLike",
    "frame_buffer_size",
    "CodecError",
    "EncodingError",
    "InvalidStateError",
    "REFERENCE_TARGET",
    "load_target",
]
