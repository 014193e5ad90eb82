# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-09
# Updated: 2026-02-14
# Description: RetrievalService.py
# -----------------------------------------------------------------------------
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from assembly.ContextAssembler import ContextAssembler
from chunking.DocumentChunker import DocumentChunker
from config.Config import Config
from embedding.EmbeddingProvider import EmbeddingProvider
from embedding.EmbeddingRecord import EmbeddingRecord, make_record_id
from embedding.ModelVariant import ModelVariant
from similarity.QueryResult import QueryResult
from similarity.Reranker import Reranker, rerank
from similarity.SimilaritySearchEngine import SimilaritySearchEngine
from utility.cancellation import CancellationToken
from utility.errors import IngestionCancelled
from utility.logging_utils import get_class_logger
from vectorstore.CompactionWorker import CompactionWorker
from vectorstore.IndexDiagnostics import IndexDiagnostics
from vectorstore.RecordFilter import RecordFilter
from vectorstore.SegmentStorage import SegmentStorage
from vectorstore.VectorIndex import VectorIndex


@dataclass(frozen=True)
class IngestDocument:
    source_document_id: str
    text: str
    category: Optional[str] = None


@dataclass
class IngestResult:
    source_document_id: str
    chunks: int
    model_version: str
    replaced_records: int = 0


@dataclass
class BatchIngestReport:
    ingested: List[IngestResult] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def total_chunks(self) -> int:
        return sum(r.chunks for r in self.ingested)


@dataclass
class RetrievalResult:
    query: str
    context_text: str
    used_record_ids: List[str]
    results: List[QueryResult]
    model_version: str
    partial: bool = False
    estimated_tokens: int = 0
    truncated: bool = False
    reranked: bool = False

    @property
    def grounded(self) -> bool:
        return bool(self.context_text)


class RetrievalService:
    """
    Boundary of the retrieval engine:
      - ingest: chunk -> embed -> insert (re-ingest supersedes old records)
      - retrieve: embed query -> top-k search -> budgeted context
      - lifecycle: one VectorIndex per model version, compaction, model switch
    """

    def __init__(
        self,
        *,
        cfg: Config,
        provider: Optional[EmbeddingProvider] = None,
        chunker: Optional[DocumentChunker] = None,
        assembler: Optional[ContextAssembler] = None,
        diagnostics: Optional[IndexDiagnostics] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg
        self.provider = provider or EmbeddingProvider.from_config(cfg)
        self.chunker = chunker or DocumentChunker(
            max_size=cfg.chunk_max_size,
            overlap=cfg.chunk_overlap,
            boundary_tolerance=cfg.chunk_boundary_tolerance,
        )
        self.assembler = assembler or ContextAssembler.from_config(cfg)
        self.diagnostics = diagnostics or IndexDiagnostics()
        self.logger = logger or get_class_logger(self.__class__)

        self._indexes: Dict[str, VectorIndex] = {}
        self._workers: Dict[str, CompactionWorker] = {}
        self._indexes_lock = threading.Lock()
        self._ingest_lock = threading.RLock()

    def start(self) -> None:
        """Load the configured embedding variant and start background compaction if enabled."""
        self.provider.load(self.cfg.embedding_variant)
        if self.cfg.compaction_interval_sec > 0:
            self.start_background_compaction()
        self.logger.info("RetrievalService started (model_version=%s)", self.model_version)

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    @property
    def model_version(self) -> str:
        return self.provider.model_version

    def index_for(self, model_version: str) -> VectorIndex:
        with self._indexes_lock:
            index = self._indexes.get(model_version)
            if index is None:
                index = VectorIndex.from_config(self.cfg, model_version, diagnostics=self.diagnostics)
                self._indexes[model_version] = index
            return index

    def _open_indexes(self) -> List[VectorIndex]:
        with self._indexes_lock:
            return list(self._indexes.values())

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(
        self,
        source_document_id: str,
        text: str,
        category: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> IngestResult:
        doc_id = (source_document_id or "").strip()
        if not doc_id:
            raise ValueError("source_document_id must not be empty")
        if text is None:
            raise ValueError("text must not be None")

        with self._ingest_lock:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(f"before ingesting {doc_id}")

            chunks = list(self.chunker.chunk(text))
            if not chunks:
                replaced = self._delete_locked(doc_id)
                self.logger.warning("No chunks produced for document '%s'", doc_id)
                return IngestResult(doc_id, 0, self.model_version, replaced)

            # previous records stay searchable until embedding has succeeded
            try:
                vectors, version = self.provider.embed_batch(
                    [c.text for c in chunks],
                    cancel_token=cancel_token,
                )
            except IngestionCancelled:
                self.logger.warning("Ingestion of '%s' cancelled; previous version kept", doc_id)
                raise
            except Exception:
                self.logger.error("Embedding '%s' failed; previous version kept", doc_id)
                raise

            if cancel_token is not None:
                cancel_token.raise_if_cancelled(f"committing {doc_id}")

            records = [
                EmbeddingRecord(
                    id=make_record_id(doc_id, chunk.index),
                    source_document_id=doc_id,
                    chunk_index=chunk.index,
                    text=chunk.text,
                    vector=vector,
                    model_version=version,
                    category=category,
                    start_offset=chunk.start_offset,
                    end_offset=chunk.end_offset,
                )
                for chunk, vector in zip(chunks, vectors)
            ]
            index = self.index_for(version)
            replaced = sum(
                other.delete(doc_id) for other in self._open_indexes() if other is not index
            )
            try:
                replaced += index.replace_document(doc_id, records)
            except Exception:
                self.logger.error("Ingestion of '%s' failed while writing; document removed", doc_id)
                raise

        self.logger.info(
            "Ingested document '%s': %d chunks (version=%s, replaced=%d)",
            doc_id,
            len(chunks),
            version,
            replaced,
        )
        return IngestResult(doc_id, len(chunks), version, replaced)

    def ingest_batch(
        self,
        documents: Iterable[Union[IngestDocument, Sequence[Any]]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchIngestReport:
        """Ingest several documents; one failing document never aborts the rest."""
        report = BatchIngestReport()

        for item in documents:
            doc = item if isinstance(item, IngestDocument) else IngestDocument(*item)
            if cancel_token is not None and cancel_token.cancelled:
                report.cancelled = True
                break
            try:
                report.ingested.append(
                    self.ingest(doc.source_document_id, doc.text, doc.category, cancel_token=cancel_token)
                )
            except IngestionCancelled:
                report.cancelled = True
                break
            except Exception as e:
                self.logger.error("Failed ingest for document '%s': %s", doc.source_document_id, e, exc_info=True)
                report.failed[doc.source_document_id] = str(e)

        self.flush()
        self.logger.info(
            "Batch ingest complete: %d ingested, %d failed, cancelled=%s",
            len(report.ingested),
            len(report.failed),
            report.cancelled,
        )
        return report

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def retrieve(
        self,
        query_text: str,
        k: Optional[int] = None,
        category: Optional[str] = None,
        min_score: Optional[float] = None,
        token_budget: Optional[int] = None,
        source_document_ids: Optional[Iterable[str]] = None,
        reranker: Optional[Reranker] = None,
    ) -> RetrievalResult:
        """
        Embed the query, take the top-k passages and assemble them into a context.
        With a `reranker`, rerank_fetch_factor * k candidates are fetched,
        re-scored by the reranker and trimmed back to k. If the reranker
        fails the similarity order is kept.
        """
        q = (query_text or "").strip()
        if not q:
            raise ValueError("query_text must not be empty")

        k = self.cfg.default_k if k is None else k
        min_score = self.cfg.min_score if min_score is None else min_score
        token_budget = self.cfg.token_budget if token_budget is None else token_budget
        fetch_k = k * self.cfg.rerank_fetch_factor if reranker is not None else k

        vector, version = self.provider.embed_with_version(q)
        engine = SimilaritySearchEngine(self.index_for(version))
        response = engine.search(
            vector,
            fetch_k,
            record_filter=RecordFilter.build(category, source_document_ids),
            min_score=min_score,
            model_version=version,
        )

        results = response.results
        reranked = False
        if reranker is not None and len(results) > k:
            try:
                results = rerank(q, results, reranker, k)
                reranked = True
            except Exception as e:
                self.logger.warning("Reranking failed, keeping similarity order: %s", e, exc_info=True)
                results = results[:k]

        context = self.assembler.assemble(results, token_budget)

        self.logger.info(
            "retrieve: query='%s' k=%d hits=%d used=%d partial=%s reranked=%s",
            q[:120],
            k,
            len(results),
            len(context.used_record_ids),
            response.partial,
            reranked,
        )
        return RetrievalResult(
            query=q,
            context_text=context.context_text,
            used_record_ids=context.used_record_ids,
            results=results,
            model_version=version,
            partial=response.partial,
            estimated_tokens=context.estimated_tokens,
            truncated=context.truncated,
            reranked=reranked,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def delete_document(self, source_document_id: str) -> int:
        with self._ingest_lock:
            return self._delete_locked(source_document_id)

    def _delete_locked(self, source_document_id: str) -> int:
        self.index_for(self.model_version)
        return sum(index.delete(source_document_id) for index in self._open_indexes())

    def compact(self, min_tombstone_ratio: Optional[float] = None) -> int:
        ratio = 0.0 if min_tombstone_ratio is None else min_tombstone_ratio
        return sum(index.compact(min_tombstone_ratio=ratio) for index in self._open_indexes())

    def flush(self) -> None:
        for index in self._open_indexes():
            index.flush()

    def switch_model(self, variant: Union[str, ModelVariant]) -> Dict[str, Any]:
        """
        Load a new embedding variant and drop every index built with another
        model version. Callers re-ingest to repopulate. If the variant cannot
        be loaded the provider serves pseudo-embeddings and nothing is dropped.
        """
        with self._ingest_lock:
            self.provider.load(variant)
            current = self.model_version

            if self.provider.is_degraded:
                self.logger.warning(
                    "Embedding variant %s did not load; keeping existing indexes (serving %s)",
                    variant.name if isinstance(variant, ModelVariant) else variant,
                    current,
                )
                return {"model_version": current, "dropped_versions": []}

            stale = set(SegmentStorage.list_model_versions(self.cfg.index_dir))
            with self._indexes_lock:
                stale.update(self._indexes)
            stale.discard(current)

            for version in sorted(stale):
                self._close_index(version)
                SegmentStorage.drop_model_version(self.cfg.index_dir, version)
                self.logger.warning("Dropped stale embeddings for model version %s", version)

        self.logger.info("Switched embedding model (version=%s)", current)
        return {"model_version": current, "dropped_versions": sorted(stale)}

    def _close_index(self, model_version: str) -> None:
        worker = self._workers.pop(model_version, None)
        if worker is not None:
            worker.stop()
        with self._indexes_lock:
            index = self._indexes.pop(model_version, None)
        if index is not None:
            index.close()

    def start_background_compaction(
        self,
        interval_sec: Optional[float] = None,
        min_tombstone_ratio: Optional[float] = None,
    ) -> CompactionWorker:
        version = self.model_version
        worker = self._workers.get(version)
        if worker is None:
            worker = CompactionWorker(
                self.index_for(version),
                interval_sec=interval_sec or self.cfg.compaction_interval_sec,
                min_tombstone_ratio=(
                    self.cfg.compaction_min_tombstone_ratio
                    if min_tombstone_ratio is None else min_tombstone_ratio
                ),
            )
            self._workers[version] = worker
        worker.start()
        return worker

    def list_documents(self) -> Dict[str, int]:
        return self.index_for(self.model_version).list_documents()

    def stats(self) -> Dict[str, Any]:
        with self._indexes_lock:
            indexes = dict(self._indexes)
        return {
            "model_version": self.model_version,
            "provider": self.provider.stats(),
            "indexes": {v: idx.stats() for v, idx in indexes.items()},
            "diagnostics": self.diagnostics.snapshot(),
        }

    def close(self) -> None:
        for version in list(self._workers):
            self._workers.pop(version).stop()
        for index in self._open_indexes():
            index.close()
        with self._indexes_lock:
            self._indexes.clear()
        self.provider.close()
        self.logger.info("RetrievalService closed")

    def __enter__(self) -> "RetrievalService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
