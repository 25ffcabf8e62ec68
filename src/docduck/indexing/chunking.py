"""Fixed-size character chunking with overlap."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from docduck.config.components import ChunkingConfig


@dataclass(frozen=True)
class Chunk:
    """A slice of a document's text.

    Attributes:
        number: Zero-based position of the chunk in the document
        char_start: Offset of the first character
        char_end: Offset one past the last character
        text: The chunk text
    """

    number: int
    char_start: int
    char_end: int
    text: str


class TextChunker:
    """Split text into chunks of ``chunk_size`` characters.

    Consecutive chunks share ``chunk_overlap`` characters. The last chunk
    ends at the end of the text and may be shorter.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = (config or ChunkingConfig()).validate()

    def iter_chunks(self, text: str) -> Iterator[Chunk]:
        if not text or not text.strip():
            return
        size = self.config.chunk_size
        step = size - self.config.chunk_overlap
        position = 0
        number = 0
        while position < len(text):
            end = min(position + size, len(text))
            yield Chunk(number, position, end, text[position:end])
            if end == len(text):
                break
            position += step
            number += 1

    def chunk(self, text: str) -> list[Chunk]:
        return list(self.iter_chunks(text))
