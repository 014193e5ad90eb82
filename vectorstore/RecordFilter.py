# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-06
# Description: RecordFilter
# -----------------------------------------------------------------------------
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from embedding.EmbeddingRecord import EmbeddingRecord
from vectorstore.Segment import SegmentInfo


@dataclass(frozen=True)
class RecordFilter:
    """Scopes a query to a category (subject) and/or a set of source documents."""

    category: Optional[str] = None
    source_document_ids: Optional[FrozenSet[str]] = None

    @classmethod
    def build(
        cls,
        category: Optional[str] = None,
        source_document_ids: Optional[Iterable[str]] = None,
    ) -> Optional["RecordFilter"]:
        """Return None when nothing would be filtered."""
        ids = frozenset(source_document_ids) if source_document_ids is not None else None
        if category is None and ids is None:
            return None
        return cls(category=category, source_document_ids=ids)

    def matches(self, record: EmbeddingRecord) -> bool:
        if self.category is not None and record.category != self.category:
            return False
        if self.source_document_ids is not None and record.source_document_id not in self.source_document_ids:
            return False
        return True

    def may_match_segment(self, info: SegmentInfo) -> bool:
        """Manifest-level check so segments that cannot match are never loaded."""
        if self.category is not None and self.category not in info.categories:
            return False
        if self.source_document_ids is not None:
            return any(info.has_live_document(d) for d in self.source_document_ids)
        return True
