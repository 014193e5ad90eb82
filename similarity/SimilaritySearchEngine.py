# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-07
# Updated: 2026-02-11
# Description: SimilaritySearchEngine
# -----------------------------------------------------------------------------
import heapq
from contextlib import closing
from typing import List, Optional, Sequence

import numpy as np

from embedding.EmbeddingRecord import EmbeddingRecord
from similarity.QueryResult import QueryResult, SearchResponse
from similarity.SimilarityMetric import CosineMetric, SimilarityMetric
from utility.logging_utils import get_class_logger
from vectorstore.IndexDiagnostics import IndexDiagnostics
from vectorstore.RecordFilter import RecordFilter
from vectorstore.Segment import ScanStats
from vectorstore.VectorIndex import VectorIndex


class _Ranked:
    """Heap entry. `a < b` means a ranks below b, so the heap root is the weakest hit."""

    __slots__ = ("score", "record")

    def __init__(self, score: float, record: EmbeddingRecord):
        self.score = score
        self.record = record

    def __lt__(self, other: "_Ranked") -> bool:
        if self.score != other.score:
            return self.score < other.score
        if self.record.chunk_index != other.record.chunk_index:
            return self.record.chunk_index > other.record.chunk_index
        return self.record.id > other.record.id


class SimilaritySearchEngine:
    """
    Top-k nearest neighbour search over a VectorIndex.

    One bounded min-heap of size k per query (O(n log k)). Scores within
    `tie_epsilon` of each other are ties, broken by lower chunk_index and
    then lexical record id, so repeated queries return identical orderings.
    """

    def __init__(
            self,
            index: VectorIndex,
            *,
            metric: Optional[SimilarityMetric] = None,
            diagnostics: Optional[IndexDiagnostics] = None,
            tie_epsilon: float = 1e-6,
            logger=None,
    ):
        if tie_epsilon <= 0:
            raise ValueError("tie_epsilon must be > 0")
        self.index = index
        self.metric = metric or CosineMetric()
        self.diagnostics = diagnostics or index.diagnostics
        self.tie_epsilon = tie_epsilon
        self.logger = logger or get_class_logger(self.__class__)

    def search(
            self,
            query_vector: np.ndarray,
            k: int,
            record_filter: Optional[RecordFilter] = None,
            min_score: Optional[float] = None,
            model_version: Optional[str] = None,
    ) -> SearchResponse:
        if k <= 0:
            return SearchResponse()

        expected_version = model_version or self.index.model_version
        query = self.metric.prepare_query(query_vector)
        dims = query.shape[0]

        heap: List[_Ranked] = []
        scan = ScanStats()
        scanned = 0
        mismatched = 0

        with closing(self.index.query_segments(record_filter, scan)) as views:
            for view in views:
                segment = view.segment
                if segment.model_version != expected_version or segment.dimensions != dims:
                    mismatched += len(segment)
                    continue

                scores = self.metric.score(query, segment.vectors)
                for record, raw in zip(segment.records, scores):
                    scanned += 1
                    if record.model_version != expected_version:
                        mismatched += 1
                        continue
                    if not view.is_live(record):
                        continue
                    if record_filter is not None and not record_filter.matches(record):
                        continue
                    score = float(raw)
                    if min_score is not None and score < min_score:
                        continue

                    entry = _Ranked(score, record)
                    if len(heap) < k:
                        heapq.heappush(heap, entry)
                    elif heap[0] < entry:
                        heapq.heapreplace(heap, entry)

        if mismatched:
            self.diagnostics.increment("version_mismatch_filtered", mismatched)
            self.logger.debug("Filtered %d records with a different model version", mismatched)
        self.diagnostics.increment("queries")

        ranked = self._break_ties(sorted(heap, reverse=True))
        response = SearchResponse(
            results=[self._to_result(e) for e in ranked],
            partial=scan.partial,
            scanned=scanned,
            version_mismatch_filtered=mismatched,
            skipped_segments=list(scan.skipped_segments),
        )
        self.logger.debug(
            "Search k=%d: %d results from %d records (%d segments, partial=%s)",
            k,
            len(response.results),
            scanned,
            scan.segments_scanned,
            scan.partial,
        )
        return response

    def search_many(
            self,
            query_vectors: Sequence[np.ndarray],
            k: int,
            record_filter: Optional[RecordFilter] = None,
            min_score: Optional[float] = None,
            model_version: Optional[str] = None,
    ) -> List[SearchResponse]:
        return [
            self.search(q, k, record_filter=record_filter, min_score=min_score, model_version=model_version)
            for q in query_vectors
        ]

    def _break_ties(self, ranked: List[_Ranked]) -> List[_Ranked]:
        """
        Reorder runs of near-equal scores. A run is every entry within
        tie_epsilon of the run's best score; inside it lower chunk_index wins,
        then lexical record id.
        """
        out: List[_Ranked] = []
        i = 0
        while i < len(ranked):
            j = i + 1
            while j < len(ranked) and ranked[i].score - ranked[j].score <= self.tie_epsilon:
                j += 1
            out.extend(sorted(ranked[i:j], key=lambda e: (e.record.chunk_index, e.record.id)))
            i = j
        return out

    @staticmethod
    def _to_result(entry: _Ranked) -> QueryResult:
        r = entry.record
        return QueryResult(
            record_id=r.id,
            score=entry.score,
            text=r.text,
            source_document_id=r.source_document_id,
            chunk_index=r.chunk_index,
            category=r.category,
            start_offset=r.start_offset,
            end_offset=r.end_offset,
        )
