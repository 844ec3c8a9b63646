"""
Tests for the shared guardrail helpers.
"""

import pytest

from codec_guardrails.guardrails import ChunkSink
from codec_guardrails.target import EncodedChunk, EncodingError


class TestChunkSink:
    """Tests for ChunkSink counting and error delivery."""

    def test_counts_chunks_key_chunks_and_bytes(self):
        sink = ChunkSink()
        sink.on_chunk(EncodedChunk(type="key", timestamp=0, data=b"abcd", duration=33333))
        sink.on_chunk(EncodedChunk(type="delta", timestamp=33333, data=b"ef", duration=33333))
        sink.on_chunk(EncodedChunk(type="delta", timestamp=66666, data=b""))

        assert sink.chunks == 3
        assert sink.key_chunks == 1
        assert sink.bytes == 6

    def test_error_is_reraised(self):
        sink = ChunkSink()
        error = EncodingError("compression failed", timestamp=0)
        with pytest.raises(EncodingError):
            sink.on_error(error)
        assert sink.errors == [error]

    def test_error_is_recorded_only(self):
        sink = ChunkSink(raise_errors=False)
        error = RuntimeError("late failure")
        sink.on_error(error)
        assert sink.errors == [error]
        assert sink.chunks == 0
