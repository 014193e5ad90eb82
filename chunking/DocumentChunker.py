# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-11
# Updated: 2026-02-03
# Description: DocumentChunker
# -----------------------------------------------------------------------------
import logging
import math
import re
from typing import Iterator, Optional

from chunking.TextChunk import TextChunk
from utility.logging_utils import get_class_logger

# Boundary preference order: paragraph break, sentence end, any whitespace
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_END = re.compile(r"[.!?]+[\"')\]]*\s+")
_WHITESPACE = re.compile(r"\s+")
_BOUNDARY_PATTERNS = (_PARAGRAPH_BREAK, _SENTENCE_END, _WHITESPACE)


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Rough estimation: ~4 characters per token, never less than 1 for non-empty text."""
    if not text:
        return 0
    return max(1, math.ceil(len(text) / chars_per_token))


class DocumentChunker:
    """
    Splits source text into bounded, overlapping TextChunk objects.

    The cut for each chunk is placed at the last paragraph / sentence /
    whitespace boundary inside a tolerance window that ends at
    start + max_size; without a boundary in the window it is a hard cut.
    Chunk i+1 starts `overlap` characters before chunk i ends.
    """

    def __init__(
        self,
        *,
        max_size: int = 512,
        overlap: int = 128,
        boundary_tolerance: Optional[int] = None,
        logger: logging.Logger | None = None,
    ):
        self._validate(max_size, overlap)
        self.max_size = max_size
        self.overlap = overlap
        self.boundary_tolerance = boundary_tolerance
        self.logger = logger or get_class_logger(self.__class__)

    @staticmethod
    def _validate(max_size: int, overlap: int) -> None:
        # guard against bad config that can cause infinite loops
        if max_size <= 0:
            raise ValueError(f"max_size must be > 0, got {max_size}")
        if overlap < 0 or overlap >= max_size:
            raise ValueError(f"overlap ({overlap}) must be >= 0 and < max_size ({max_size})")

    def _tolerance_for(self, max_size: int) -> int:
        if self.boundary_tolerance is not None:
            return self.boundary_tolerance
        return max_size // 5

    def chunk(
        self,
        text: str,
        max_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> Iterator[TextChunk]:
        """
        Lazily yield chunks of `text` in document order.

        Empty text yields nothing; text no longer than max_size yields a single
        chunk equal to the input.
        """
        max_size = self.max_size if max_size is None else max_size
        overlap = self.overlap if overlap is None else overlap
        self._validate(max_size, overlap)

        n = len(text)
        if n == 0:
            return

        if n <= max_size:
            yield TextChunk(index=0, text=text, start_offset=0, end_offset=n)
            return

        tolerance = self._tolerance_for(max_size)
        start = 0
        index = 0
        boundary_cuts = 0

        while True:
            hard_end = start + max_size
            if hard_end >= n:
                yield TextChunk(index=index, text=text[start:n], start_offset=start, end_offset=n)
                index += 1
                break

            end = self._find_cut(text, start, hard_end, overlap, tolerance)
            if end != hard_end:
                boundary_cuts += 1

            yield TextChunk(index=index, text=text[start:end], start_offset=start, end_offset=end)
            index += 1
            start = end - overlap

        self.logger.debug(
            "Chunking summary: chars=%d chunks=%d boundary_cuts=%d max_size=%d overlap=%d",
            n,
            index,
            boundary_cuts,
            max_size,
            overlap,
        )

    @staticmethod
    def _find_cut(text: str, start: int, hard_end: int, overlap: int, tolerance: int) -> int:
        """
        Return the end offset for a chunk starting at `start`.
        The window never reaches back past start + overlap, so the next chunk
        always starts after this one.
        """
        lo = max(hard_end - tolerance, start + overlap + 1)
        if lo >= hard_end:
            return hard_end

        window = text[lo:hard_end]
        for pattern in _BOUNDARY_PATTERNS:
            last = None
            for m in pattern.finditer(window):
                last = m
            if last is not None:
                return lo + last.end()

        return hard_end
