# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-07
# Description: QueryResult
# -----------------------------------------------------------------------------
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class QueryResult:
    record_id: str
    score: float
    text: str
    source_document_id: str
    chunk_index: int
    category: Optional[str] = None
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SearchResponse:
    """Ranked results plus what the scan saw (partial flag, filtered and skipped counts)."""
    results: List[QueryResult] = field(default_factory=list)
    partial: bool = False
    scanned: int = 0
    version_mismatch_filtered: int = 0
    skipped_segments: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    @property
    def record_ids(self) -> List[str]:
        return [r.record_id for r in self.results]
