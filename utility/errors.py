# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-02
# Description: errors.py
# -----------------------------------------------------------------------------
from typing import Optional


class RetrievalError(Exception):
    """Base class for retrieval engine failures."""


class ModelNotLoaded(RetrievalError):
    """embed() was called before load() and no fallback policy is configured."""


class ModelUnavailable(RetrievalError):
    """The embedding backend could not be acquired or could not produce a vector."""


class ModelVersionMismatch(RetrievalError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Model version mismatch: expected '{expected}', got '{actual}'")
        self.expected = expected
        self.actual = actual


class IndexSegmentCorrupt(RetrievalError):
    def __init__(self, segment_id: int, reason: str) -> None:
        super().__init__(f"Segment {segment_id} is corrupt: {reason}")
        self.segment_id = segment_id
        self.reason = reason


class OutOfMemoryOnSegmentLoad(RetrievalError):
    def __init__(self, segment_id: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Out of memory while loading segment {segment_id}")
        self.segment_id = segment_id
        self.cause = cause


class IngestionCancelled(RetrievalError):
    """A cancellation request was observed between ingestion items."""
