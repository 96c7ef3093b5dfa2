"""Word-window chunker: fixed-size sliding windows over whitespace tokens."""

from __future__ import annotations

from dataclasses import dataclass

from sharelens.errors import InvalidConfig

DEFAULT_CHUNK_SIZE = 500
DEFAULT_OVERLAP = 0


@dataclass(frozen=True)
class TextChunk:
    content: str
    index: int


class WordChunker:
    """Split text into windows of ``chunk_size`` words.

    Window *i* starts at word ``i * (chunk_size - overlap)``; the last window
    may be shorter. Windows that would only repeat words already covered by
    the previous window are not emitted. Pure and deterministic.

    Raises:
        InvalidConfig: ``chunk_size <= 0``, ``overlap < 0`` or
            ``overlap >= chunk_size``.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP) -> None:
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise InvalidConfig(f"chunk_size must be a positive integer, got {chunk_size!r}")
        if isinstance(overlap, bool) or not isinstance(overlap, int) or overlap < 0:
            raise InvalidConfig(f"overlap must be a non-negative integer, got {overlap!r}")
        if overlap >= chunk_size:
            raise InvalidConfig(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.overlap = overlap

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    def chunk(self, text: str) -> list[TextChunk]:
        words = text.split()
        chunks: list[TextChunk] = []
        for start in range(0, len(words), self.step):
            window = words[start : start + self.chunk_size]
            chunks.append(TextChunk(content=" ".join(window), index=len(chunks)))
            if start + self.chunk_size >= len(words):
                break
        return chunks


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[TextChunk]:
    """Convenience wrapper around ``WordChunker(chunk_size, overlap).chunk(text)``."""
    return WordChunker(chunk_size=chunk_size, overlap=overlap).chunk(text)
