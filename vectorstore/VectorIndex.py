# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-06
# Updated: 2026-02-12
# Description: VectorIndex
# -----------------------------------------------------------------------------
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from config.Config import Config
from embedding.EmbeddingRecord import EmbeddingRecord
from embedding.VectorMath import is_normalized
from utility.errors import IndexSegmentCorrupt, ModelVersionMismatch, OutOfMemoryOnSegmentLoad
from utility.logging_utils import get_class_logger
from vectorstore.IndexDiagnostics import IndexDiagnostics
from vectorstore.RecordFilter import RecordFilter
from vectorstore.Segment import (
    TRANSIENT_SEGMENT_ID,
    ScanStats,
    Segment,
    SegmentInfo,
    SegmentView,
)
from vectorstore.SegmentStorage import Manifest, SegmentStorage


class VectorIndex:
    """
    Segmented, memory-bounded store of EmbeddingRecords for one model version.

    - Inserts go to a write buffer; a full buffer becomes an immutable segment file.
    - At most `max_resident_segments` segment bodies are held in memory (LRU).
    - Deletes are tombstones in the manifest; compact() rewrites affected segments.
    """

    def __init__(
            self,
            storage: SegmentStorage,
            *,
            segment_size: int = 256,
            max_resident_segments: int = 8,
            diagnostics: Optional[IndexDiagnostics] = None,
            compaction_wait_timeout: float = 30.0,
            logger=None,
    ):
        if segment_size <= 0:
            raise ValueError("segment_size must be > 0")
        if max_resident_segments <= 0:
            raise ValueError("max_resident_segments must be > 0")

        self.storage = storage
        self.model_version = storage.model_version
        self.segment_size = segment_size
        self.max_resident_segments = max_resident_segments
        self.diagnostics = diagnostics or IndexDiagnostics()
        self.compaction_wait_timeout = compaction_wait_timeout
        self.logger = logger or get_class_logger(self.__class__)

        self._write_lock = threading.RLock()
        self._cache_lock = threading.Lock()
        self._gate = threading.Condition()
        self._active_queries = 0
        self._compacting = False

        self._resident: "OrderedDict[int, Segment]" = OrderedDict()
        self._buffer: Tuple[EmbeddingRecord, ...] = ()
        self._corrupt: set = set()

        manifest = storage.load_manifest()
        self._segments: Dict[int, SegmentInfo] = dict(manifest.segments)
        self._next_segment_id = manifest.next_segment_id
        self._dimensions = manifest.dimensions

        self.logger.info(
            "VectorIndex opened: version=%s segments=%d records=%d",
            self.model_version,
            len(self._segments),
            sum(i.live_count for i in self._segments.values()),
        )

    @classmethod
    def open(
            cls,
            root_dir: Union[str, Path],
            model_version: str,
            **kwargs: Any,
    ) -> "VectorIndex":
        return cls(SegmentStorage(root_dir, model_version), **kwargs)

    @classmethod
    def from_config(
            cls,
            cfg: Config,
            model_version: str,
            diagnostics: Optional[IndexDiagnostics] = None,
    ) -> "VectorIndex":
        return cls.open(
            cfg.index_dir,
            model_version,
            segment_size=cfg.segment_size,
            max_resident_segments=cfg.max_resident_segments,
            diagnostics=diagnostics,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def dimensions(self) -> Optional[int]:
        return self._dimensions

    @property
    def segment_count(self) -> int:
        return len(self._segments)

    @property
    def buffered_count(self) -> int:
        return len(self._buffer)

    @property
    def resident_segment_count(self) -> int:
        with self._cache_lock:
            return len(self._resident)

    @property
    def resident_segment_ids(self) -> List[int]:
        with self._cache_lock:
            return list(self._resident)

    def segment_infos(self) -> List[SegmentInfo]:
        segments = self._segments
        return [segments[k] for k in sorted(segments)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, record: EmbeddingRecord) -> None:
        self._validate(record)
        with self._write_lock:
            if self._dimensions is not None and record.dimensions != self._dimensions:
                raise ValueError(
                    f"Record {record.id} has {record.dimensions} dimensions; index expects {self._dimensions}"
                )
            if any(r.id == record.id for r in self._buffer):
                raise ValueError(f"Duplicate record id in write buffer: {record.id}")

            self._buffer = self._buffer + (record,)
            if self._dimensions is None:
                self._dimensions = record.dimensions

            if len(self._buffer) >= self.segment_size:
                self._flush_locked()

    def insert_many(self, records: Iterable[EmbeddingRecord]) -> int:
        n = 0
        with self._write_lock:
            for record in records:
                self.insert(record)
                n += 1
        return n

    def _validate(self, record: EmbeddingRecord) -> None:
        if record.model_version != self.model_version:
            raise ModelVersionMismatch(self.model_version, record.model_version)
        if record.vector.ndim != 1:
            raise ValueError(f"Record {record.id} vector must be one-dimensional")
        if not is_normalized(record.vector):
            raise ValueError(f"Record {record.id} vector is not L2-normalised")

    def flush(self) -> Optional[SegmentInfo]:
        """Persist the write buffer as a new segment. Returns None when the buffer is empty."""
        with self._write_lock:
            return self._flush_locked()

    def _flush_locked(self) -> Optional[SegmentInfo]:
        if not self._buffer:
            return None

        segment = Segment.from_records(self._next_segment_id, self.model_version, self._buffer)
        info = self.storage.write_segment(segment)

        segments = dict(self._segments)
        segments[info.segment_id] = info
        self._next_segment_id += 1
        self._segments = segments
        self._buffer = ()
        self._save_manifest_locked()

        self.diagnostics.increment("flushes")
        self.logger.info(
            "Flushed segment %d (%d records, %d documents)",
            info.segment_id,
            info.record_count,
            len(info.document_counts),
        )
        return info

    def _save_manifest_locked(self) -> None:
        self.storage.save_manifest(
            Manifest(
                model_version=self.model_version,
                dimensions=self._dimensions,
                next_segment_id=self._next_segment_id,
                segments=self._segments,
            )
        )

    def delete(self, source_document_id: str) -> int:
        """Remove every record of a document. Segment bodies are untouched until compaction."""
        with self._write_lock:
            kept = tuple(r for r in self._buffer if r.source_document_id != source_document_id)
            removed = len(self._buffer) - len(kept)
            self._buffer = kept

            segments = dict(self._segments)
            tombstoned = 0
            for seg_id, info in self._segments.items():
                if info.has_live_document(source_document_id):
                    segments[seg_id] = info.with_tombstone(source_document_id)
                    removed += info.document_counts[source_document_id]
                    tombstoned += 1

            if tombstoned:
                self._segments = segments
                self._save_manifest_locked()

        if removed:
            self.logger.info(
                "Deleted document %s: %d records (%d segments tombstoned)",
                source_document_id,
                removed,
                tombstoned,
            )
        return removed

    def replace_document(self, source_document_id: str, records: Iterable[EmbeddingRecord]) -> int:
        """
        Swap a document's records for `records` under one write lock.
        Returns how many old records were removed. If an insert fails, every
        record of the document is removed before the error propagates.
        """
        records = list(records)
        for record in records:
            if record.source_document_id != source_document_id:
                raise ValueError(f"Record {record.id} belongs to {record.source_document_id}")
            self._validate(record)

        with self._write_lock:
            removed = self.delete(source_document_id)
            try:
                for record in records:
                    self.insert(record)
            except Exception:
                self.delete(source_document_id)
                raise
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_segments(
            self,
            record_filter: Optional[RecordFilter] = None,
            stats: Optional[ScanStats] = None,
    ) -> Iterator[SegmentView]:
        """
        Yield segments for one query: resident ones first, then the rest loaded
        on demand, then a transient view of the unflushed write buffer.
        Corrupt segments are skipped; running out of memory ends the scan with
        stats.partial set.
        """
        stats = stats if stats is not None else ScanStats()
        self._enter_query()
        try:
            segments = self._segments
            buffer = self._buffer

            candidates = {
                seg_id: info
                for seg_id, info in segments.items()
                if info.live_count > 0
                and seg_id not in self._corrupt
                and (record_filter is None or record_filter.may_match_segment(info))
            }
            with self._cache_lock:
                resident_first = [seg_id for seg_id in self._resident if seg_id in candidates]
            ordered = resident_first + sorted(s for s in candidates if s not in resident_first)

            for seg_id in ordered:
                info = candidates[seg_id]
                try:
                    segment = self._acquire(info)
                except IndexSegmentCorrupt as e:
                    self.logger.error("Skipping corrupt segment %d: %s", seg_id, e.reason)
                    self._corrupt.add(seg_id)
                    self.diagnostics.increment("corrupt_segments_skipped")
                    stats.skipped_segments.append(seg_id)
                    continue
                except OutOfMemoryOnSegmentLoad as e:
                    self.logger.error("%s; returning partial results", e)
                    self.diagnostics.increment("partial_scans")
                    stats.partial = True
                    break

                stats.segments_scanned += 1
                current = self._segments.get(seg_id, info)
                yield SegmentView(segment, frozenset(current.tombstoned_documents))

            if buffer and not stats.partial:
                if record_filter is None or any(record_filter.matches(r) for r in buffer):
                    snapshot = Segment.from_records(TRANSIENT_SEGMENT_ID, self.model_version, buffer)
                    yield SegmentView(snapshot, transient=True)
        finally:
            self._exit_query()

    def _acquire(self, info: SegmentInfo) -> Segment:
        with self._cache_lock:
            segment = self._resident.get(info.segment_id)
            if segment is not None:
                self._resident.move_to_end(info.segment_id)
                self.diagnostics.increment("cache_hits")
                return segment
            while len(self._resident) >= self.max_resident_segments:
                self._evict_lru_locked()

        # disk reads happen outside _cache_lock so hits on other segments are not blocked
        try:
            segment = self.storage.read_segment(info)
        except MemoryError:
            self.diagnostics.increment("oom_retries")
            self.logger.warning("MemoryError loading segment %d; evicting and retrying", info.segment_id)
            with self._cache_lock:
                if self._resident:
                    self._evict_lru_locked()
            try:
                segment = self.storage.read_segment(info)
            except MemoryError as e:
                raise OutOfMemoryOnSegmentLoad(info.segment_id, e) from e

        with self._cache_lock:
            loaded = self._resident.get(info.segment_id)
            if loaded is not None:
                # another reader loaded it first
                self._resident.move_to_end(info.segment_id)
                return loaded
            while len(self._resident) >= self.max_resident_segments:
                self._evict_lru_locked()
            self._resident[info.segment_id] = segment
            self.diagnostics.increment("segments_loaded")
            return segment

    def _evict_lru_locked(self) -> int:
        seg_id, _ = self._resident.popitem(last=False)
        self.diagnostics.increment("segments_evicted")
        self.logger.debug("Evicted segment %d", seg_id)
        return seg_id

    def release_resident(self) -> None:
        """Drop every resident segment body (e.g. on a low-memory signal)."""
        with self._cache_lock:
            n = len(self._resident)
            self._resident.clear()
        if n:
            self.diagnostics.increment("segments_evicted", n)

    def _enter_query(self) -> None:
        with self._gate:
            while self._compacting:
                self._gate.wait()
            self._active_queries += 1

    def _exit_query(self) -> None:
        with self._gate:
            self._active_queries -= 1
            if self._active_queries == 0:
                self._gate.notify_all()

    # ------------------------------------------------------------------
    # Compaction
    # ------------------------------------------------------------------

    def compact(self, min_tombstone_ratio: float = 0.0) -> int:
        """
        Rewrite segments that hold tombstoned records. Waits for in-flight
        queries and blocks new ones while running. Returns the number of
        segments rewritten (0 if nothing qualified or queries did not drain
        within `compaction_wait_timeout`).
        """
        with self._write_lock:
            targets = [
                info for info in self._segments.values()
                if info.tombstone_count > 0 and info.tombstone_ratio >= min_tombstone_ratio
            ]
            if not targets:
                return 0

            with self._gate:
                drained = self._gate.wait_for(
                    lambda: self._active_queries == 0,
                    timeout=self.compaction_wait_timeout,
                )
                if not drained:
                    self.logger.warning("Compaction deferred: queries still in flight")
                    return 0
                self._compacting = True

            try:
                return self._compact_locked(targets)
            finally:
                with self._gate:
                    self._compacting = False
                    self._gate.notify_all()

    def _compact_locked(self, targets: List[SegmentInfo]) -> int:
        survivors: List[EmbeddingRecord] = []
        replaced: List[SegmentInfo] = []
        for info in sorted(targets, key=lambda i: i.segment_id):
            try:
                segment = self.storage.read_segment(info)
            except IndexSegmentCorrupt as e:
                self.logger.error("Cannot compact segment %d: %s", info.segment_id, e.reason)
                self._corrupt.add(info.segment_id)
                continue
            survivors.extend(
                r for r in segment.records if r.source_document_id not in info.tombstoned_documents
            )
            replaced.append(info)

        if not replaced:
            return 0

        segments = dict(self._segments)
        for info in replaced:
            segments.pop(info.segment_id, None)

        for i in range(0, len(survivors), self.segment_size):
            segment = Segment.from_records(
                self._next_segment_id,
                self.model_version,
                survivors[i:i + self.segment_size],
            )
            new_info = self.storage.write_segment(segment)
            segments[new_info.segment_id] = new_info
            self._next_segment_id += 1

        self._segments = segments
        self._save_manifest_locked()

        with self._cache_lock:
            for info in replaced:
                self._resident.pop(info.segment_id, None)
        for info in replaced:
            self.storage.delete_segment_file(info)

        self.diagnostics.increment("compactions")
        self.logger.info(
            "Compacted %d segments (%d live records kept)",
            len(replaced),
            len(survivors),
        )
        return len(replaced)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def list_documents(self) -> Dict[str, int]:
        """source_document_id -> live record count."""
        counts: Dict[str, int] = {}
        for info in self._segments.values():
            for doc_id, n in info.live_documents().items():
                counts[doc_id] = counts.get(doc_id, 0) + n
        for r in self._buffer:
            counts[r.source_document_id] = counts.get(r.source_document_id, 0) + 1
        return dict(sorted(counts.items()))

    def stats(self) -> Dict[str, Any]:
        segments = self._segments
        return {
            "model_version": self.model_version,
            "dimensions": self._dimensions,
            "segments": len(segments),
            "records": sum(i.record_count for i in segments.values()),
            "live_records": sum(i.live_count for i in segments.values()),
            "tombstoned_records": sum(i.tombstone_count for i in segments.values()),
            "buffered_records": len(self._buffer),
            "resident_segments": self.resident_segment_count,
            "max_resident_segments": self.max_resident_segments,
            "corrupt_segments": sorted(self._corrupt),
            "diagnostics": self.diagnostics.snapshot(),
        }

    def close(self) -> None:
        self.flush()
        self.release_resident()
        self.logger.info("VectorIndex closed: version=%s", self.model_version)
