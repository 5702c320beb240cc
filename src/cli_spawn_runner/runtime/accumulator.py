"""Per-stream output accumulation."""

from __future__ import annotations

__all__ = ["StreamAccumulator", "coerce_chunk"]


def coerce_chunk(chunk: bytes | bytearray | memoryview | str) -> bytes:
    """Convert a delivered chunk to raw bytes.

    Text chunks are treated as binary-decoded data (one code point per byte),
    so they are re-encoded with latin-1 instead of being transcoded.
    """
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, (bytearray, memoryview)):
        return bytes(chunk)
    if isinstance(chunk, str):
        return chunk.encode("latin-1")
    raise TypeError(f"unsupported chunk type: {type(chunk).__name__}")


class StreamAccumulator:
    """Ordered chunk buffer for one output stream.

    Chunks are kept in arrival order and joined once by finalize().
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._chunks: list[bytes] = []
        self._buffer: bytes | None = None

    @property
    def finalized(self) -> bool:
        return self._buffer is not None

    def append(self, chunk: bytes | bytearray | memoryview | str) -> None:
        if self._buffer is not None:
            raise RuntimeError(f"{self.name} accumulator already finalized")
        self._chunks.append(coerce_chunk(chunk))

    def finalize(self) -> bytes:
        if self._buffer is None:
            self._buffer = b"".join(self._chunks)
            self._chunks.clear()
        return self._buffer

    def __len__(self) -> int:
        if self._buffer is not None:
            return len(self._buffer)
        return sum(len(c) for c in self._chunks)
