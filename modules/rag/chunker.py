"""
Text Chunker - Overlapping Character Windows

Splits extracted document text into passages for embedding.

Each window is at most max_length characters and ends, in order of
preference, at:
1. a paragraph break ("\\n\\n") within 100 characters before the boundary
2. a sentence break (". ") from 100 before to 50 after the boundary
3. the nearest space before the boundary
4. the boundary itself (hard cut)

The next window starts `overlap` characters before the previous end, so a
concept straddling a boundary is whole in at least one chunk.
"""

from typing import Iterator, List

from modules.rag.base import TextChunker
from utils.logger import get_logger

logger = get_logger('rag.chunker')

PARAGRAPH_WINDOW = 100
SENTENCE_WINDOW_BEFORE = 100
SENTENCE_WINDOW_AFTER = 50


def _window_end(text: str, start: int, max_length: int) -> int:
    """Where the window starting at `start` should end"""
    end = start + max_length
    if end >= len(text):
        return len(text)

    # Breaks at or before `start` would produce an empty window
    floor = start + 1

    paragraph = text.find("\n\n", max(floor, end - PARAGRAPH_WINDOW), end + 1)
    if paragraph != -1:
        return paragraph

    sentence = text.find(". ", max(floor, end - SENTENCE_WINDOW_BEFORE))
    if sentence != -1 and sentence < end + SENTENCE_WINDOW_AFTER:
        return sentence + 1  # keep the period

    space = text.rfind(" ", floor, end + 1)
    if space != -1:
        return space

    return end


def iter_chunks(text: str, max_length: int = 1000, overlap: int = 200) -> Iterator[str]:
    """
    Lazily split text into overlapping, trimmed chunks.

    Args:
        text: Extracted document text
        max_length: Nominal maximum chunk length in characters
        overlap: Characters shared by adjacent chunks

    Yields:
        Trimmed chunks in document order (may be empty; callers drop those)
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    if overlap < 0:
        raise ValueError("overlap must not be negative")

    if len(text) <= max_length:
        yield text
        return

    start = 0
    while start < len(text):
        end = _window_end(text, start, max_length)
        yield text[start:end].strip()

        if end >= len(text):
            break

        next_start = max(end - overlap, 0)
        # Always move forward, even when overlap >= window length
        start = next_start if next_start > start else end


class SmartChunker(TextChunker):
    """
    Character-window chunking with boundary preference and overlap.
    """

    def __init__(self, max_length: int = 1000, overlap: int = 200):
        self.max_length = max_length
        self.overlap = overlap

        logger.info(f"SmartChunker initialized (max_length={max_length}, overlap={overlap})")

    def chunk(self, text: str) -> List[str]:
        """
        Split text into chunks.

        Returns:
            List of trimmed chunks, empty ones removed
        """
        chunks = [c for c in iter_chunks(text, self.max_length, self.overlap) if c.strip()]
        if chunks:
            logger.debug(
                f"Split {len(text)} chars into {len(chunks)} chunks "
                f"(avg: {sum(len(c) for c in chunks) / len(chunks):.0f} chars)"
            )
        return chunks
