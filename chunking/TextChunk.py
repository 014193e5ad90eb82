# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-10
# Updated: 2026-02-03
# Description: TextChunk
# -----------------------------------------------------------------------------
from dataclasses import dataclass


@dataclass(frozen=True)
class TextChunk:
    """
    A bounded, contiguous slice of a source document.
    `text` is exactly source[start_offset:end_offset]; it is never stripped so
    offsets stay usable for citation and overlap checks.
    """

    index: int
    text: str
    start_offset: int
    end_offset: int

    def __len__(self) -> int:
        return self.end_offset - self.start_offset

    def short_preview(self, n: int = 120) -> str:
        """Return a compact text preview for logging/debugging."""
        clean = " ".join(self.text.split())
        preview = (clean[:n] + "...") if len(clean) > n else clean
        return f"[#{self.index} | {self.start_offset}:{self.end_offset}] {preview}"
