# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-06
# Description: Segment
# -----------------------------------------------------------------------------
import dataclasses
import time
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Sequence, Set, Tuple

import numpy as np

from embedding.EmbeddingRecord import EmbeddingRecord

# Id used for the unflushed write buffer when it is exposed to a query
TRANSIENT_SEGMENT_ID = -1


@dataclass(frozen=True, eq=False)
class Segment:
    """
    Immutable group of records persisted and loaded together.
    `vectors` is one read-only (n, dim) float32 matrix; each record's vector
    is a row view into it.
    """

    segment_id: int
    model_version: str
    records: Tuple[EmbeddingRecord, ...]
    vectors: np.ndarray

    @classmethod
    def from_records(
        cls,
        segment_id: int,
        model_version: str,
        records: Sequence[EmbeddingRecord],
    ) -> "Segment":
        if not records:
            raise ValueError("A segment needs at least one record")
        matrix = np.vstack(
            [np.asarray(r.vector, dtype=np.float32).reshape(1, -1) for r in records]
        )
        matrix.setflags(write=False)
        rows = tuple(dataclasses.replace(r, vector=matrix[i]) for i, r in enumerate(records))
        return cls(segment_id=segment_id, model_version=model_version, records=rows, vectors=matrix)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def dimensions(self) -> int:
        return int(self.vectors.shape[1])

    @property
    def nbytes(self) -> int:
        return int(self.vectors.nbytes) + sum(len(r.text) for r in self.records)


@dataclass(frozen=True)
class SegmentInfo:
    """Manifest entry: everything needed to plan a query without loading the body."""

    segment_id: int
    file_name: str
    record_count: int
    dimensions: int
    checksum: str
    document_counts: Dict[str, int]
    categories: FrozenSet[str] = frozenset()
    tombstoned_documents: FrozenSet[str] = frozenset()
    created_at: float = field(default_factory=time.time)

    @property
    def tombstone_count(self) -> int:
        return sum(self.document_counts.get(d, 0) for d in self.tombstoned_documents)

    @property
    def live_count(self) -> int:
        return self.record_count - self.tombstone_count

    @property
    def tombstone_ratio(self) -> float:
        return self.tombstone_count / self.record_count if self.record_count else 0.0

    def has_live_document(self, source_document_id: str) -> bool:
        return (
            source_document_id in self.document_counts
            and source_document_id not in self.tombstoned_documents
        )

    def live_documents(self) -> Dict[str, int]:
        return {
            d: n for d, n in self.document_counts.items() if d not in self.tombstoned_documents
        }

    def with_tombstone(self, source_document_id: str) -> "SegmentInfo":
        return dataclasses.replace(
            self, tombstoned_documents=self.tombstoned_documents | {source_document_id}
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segment_id": self.segment_id,
            "file_name": self.file_name,
            "record_count": self.record_count,
            "tombstone_count": self.tombstone_count,
            "dimensions": self.dimensions,
            "checksum": self.checksum,
            "document_counts": dict(self.document_counts),
            "categories": sorted(self.categories),
            "tombstoned_documents": sorted(self.tombstoned_documents),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SegmentInfo":
        return cls(
            segment_id=int(d["segment_id"]),
            file_name=str(d["file_name"]),
            record_count=int(d["record_count"]),
            dimensions=int(d["dimensions"]),
            checksum=str(d.get("checksum", "")),
            document_counts={str(k): int(v) for k, v in d["document_counts"].items()},
            categories=frozenset(d.get("categories", [])),
            tombstoned_documents=frozenset(d.get("tombstoned_documents", [])),
            created_at=float(d.get("created_at", 0.0)),
        )


@dataclass(frozen=True)
class SegmentView:
    """A segment as seen by one query: the body plus the tombstones current at scan time."""

    segment: Segment
    tombstoned_documents: FrozenSet[str] = frozenset()
    transient: bool = False

    def is_live(self, record: EmbeddingRecord) -> bool:
        return record.source_document_id not in self.tombstoned_documents


@dataclass
class ScanStats:
    """Filled in by VectorIndex.query_segments while a query iterates."""

    segments_scanned: int = 0
    skipped_segments: List[int] = field(default_factory=list)
    partial: bool = False


def summarize_records(records: Sequence[EmbeddingRecord]) -> Tuple[Dict[str, int], Set[str]]:
    counts: Dict[str, int] = {}
    categories: Set[str] = set()
    for r in records:
        counts[r.source_document_id] = counts.get(r.source_document_id, 0) + 1
        if r.category is not None:
            categories.add(r.category)
    return counts, categories
