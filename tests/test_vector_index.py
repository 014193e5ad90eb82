# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-15
# Description: test_vector_index.py
# -----------------------------------------------------------------------------
import threading
import time

import numpy as np
import pytest

from conftest import make_record, unit
from embedding.EmbeddingRecord import EmbeddingRecord
from utility.errors import ModelVersionMismatch
from vectorstore.CompactionWorker import CompactionWorker
from vectorstore.RecordFilter import RecordFilter
from vectorstore.Segment import ScanStats
from vectorstore.SegmentStorage import SegmentStorage
from vectorstore.VectorIndex import VectorIndex


@pytest.fixture
def index(tmp_path):
    idx = VectorIndex.open(tmp_path / "index", "test@2", segment_size=3, max_resident_segments=2)
    yield idx
    idx.close()


def _fill(index, docs=4, per_doc=3):
    for d in range(docs):
        for i in range(per_doc):
            angle = (d * per_doc + i) * 0.1
            index.insert(make_record(f"doc-{d}", i, [np.cos(angle), np.sin(angle)]))


def test_buffer_flushes_at_segment_size(index):
    index.insert(make_record("a", 0, [1, 0]))
    index.insert(make_record("a", 1, [0, 1]))
    assert index.segment_count == 0
    assert index.buffered_count == 2

    index.insert(make_record("a", 2, [1, 1]))
    assert index.segment_count == 1
    assert index.buffered_count == 0
    assert index.storage.manifest_path.exists()


def test_insert_rejects_other_model_version(index):
    with pytest.raises(ModelVersionMismatch):
        index.insert(make_record("a", 0, [1, 0], model_version="other@2"))


def test_insert_rejects_unnormalised_vector(index):
    record = EmbeddingRecord(
        id="a_0",
        source_document_id="a",
        chunk_index=0,
        text="x",
        vector=np.array([3.0, 4.0], dtype=np.float32),
        model_version="test@2",
    )
    with pytest.raises(ValueError):
        index.insert(record)


def test_insert_rejects_wrong_dimensions(index):
    index.insert(make_record("a", 0, [1, 0]))
    with pytest.raises(ValueError):
        index.insert(make_record("a", 1, [1, 0, 0]))


def test_buffered_records_are_visible_to_queries(index):
    index.insert(make_record("a", 0, [1, 0]))
    views = list(index.query_segments())
    assert len(views) == 1
    assert views[0].transient
    assert views[0].segment.records[0].id == "a_0"


def test_resident_segments_never_exceed_budget(index):
    _fill(index, docs=4, per_doc=3)
    assert index.segment_count == 4

    observed = []
    for view in index.query_segments():
        observed.append(index.resident_segment_count)
    assert max(observed) <= 2
    assert index.resident_segment_count <= 2
    assert index.diagnostics.get("segments_evicted") >= 2


def test_resident_segments_are_scanned_first(index):
    _fill(index, docs=4, per_doc=3)
    list(index.query_segments())
    resident = index.resident_segment_ids

    order = [view.segment.segment_id for view in index.query_segments()]
    assert order[:len(resident)] == resident


def test_category_filter_skips_segments_without_loading(tmp_path):
    idx = VectorIndex.open(tmp_path, "test@2", segment_size=2, max_resident_segments=4)
    idx.insert(make_record("bio", 0, [1, 0], category="biology"))
    idx.insert(make_record("bio", 1, [0, 1], category="biology"))
    idx.insert(make_record("geo", 0, [1, 0], category="geography"))
    idx.insert(make_record("geo", 1, [0, 1], category="geography"))

    views = list(idx.query_segments(RecordFilter(category="geography")))

    assert [v.segment.records[0].source_document_id for v in views] == ["geo"]
    assert idx.diagnostics.get("segments_loaded") == 1


def test_delete_tombstones_and_compaction_removes(index):
    _fill(index, docs=2, per_doc=3)
    index.insert(make_record("doc-0", 9, [1, 0]))  # stays in the buffer

    removed = index.delete("doc-0")

    assert removed == 4
    assert "doc-0" not in index.list_documents()
    assert index.stats()["tombstoned_records"] == 3

    rewritten = index.compact()
    assert rewritten == 1
    assert index.stats()["tombstoned_records"] == 0
    ids = [r.id for v in index.query_segments() for r in v.segment.records]
    assert not any(i.startswith("doc-0_") for i in ids)


def test_replace_document_swaps_records(index):
    for i in range(3):
        index.insert(make_record("a", i, [1, i]))
    index.insert(make_record("b", 0, [0, 1]))

    removed = index.replace_document("a", [make_record("a", 0, [1, 1])])

    assert removed == 3
    assert index.list_documents() == {"a": 1, "b": 1}


def test_replace_document_rejects_foreign_records_before_deleting(index):
    index.insert(make_record("a", 0, [1, 0]))

    with pytest.raises(ValueError):
        index.replace_document("a", [make_record("b", 0, [0, 1])])

    assert index.list_documents() == {"a": 1}


def test_failed_replace_leaves_no_partial_document(index):
    index.insert(make_record("a", 0, [1, 0]))

    with pytest.raises(ValueError):
        index.replace_document("a", [make_record("a", 0, [0, 1]), make_record("a", 1, [1, 0, 0])])

    assert "a" not in index.list_documents()


def test_compaction_drops_old_segment_files(index):
    _fill(index, docs=1, per_doc=3)
    old = index.segment_infos()[0]
    index.delete("doc-0")
    index.compact()

    assert not (index.storage.directory / old.file_name).exists()
    assert index.segment_count == 0


def test_compaction_waits_for_in_flight_query(index):
    _fill(index, docs=2, per_doc=3)
    index.delete("doc-1")

    views = index.query_segments()
    next(views)  # query now in flight
    result = {}

    def run_compaction():
        result["rewritten"] = index.compact()

    t = threading.Thread(target=run_compaction)
    t.start()
    time.sleep(0.1)
    assert "rewritten" not in result

    list(views)  # finish the query
    t.join(timeout=5)
    assert result["rewritten"] == 1


def test_reopen_restores_from_manifest(tmp_path):
    idx = VectorIndex.open(tmp_path, "test@2", segment_size=2)
    idx.insert(make_record("a", 0, [1, 0]))
    idx.insert(make_record("a", 1, [0, 1]))
    idx.insert(make_record("b", 0, [1, 1]))
    idx.close()  # flushes the buffered "b" record

    reopened = VectorIndex.open(tmp_path, "test@2", segment_size=2)
    assert reopened.list_documents() == {"a": 2, "b": 1}
    assert reopened.dimensions == 2


def test_corrupt_segment_is_skipped_and_remembered(index):
    _fill(index, docs=2, per_doc=3)
    bad = index.segment_infos()[0]
    (index.storage.directory / bad.file_name).write_bytes(b"garbage")

    stats = ScanStats()
    ids = [r.id for v in index.query_segments(stats=stats) for r in v.segment.records]

    assert stats.skipped_segments == [bad.segment_id]
    assert len(ids) == 3
    list(index.query_segments())
    assert index.diagnostics.get("corrupt_segments_skipped") == 1


def test_out_of_memory_on_load_marks_scan_partial(index, monkeypatch):
    _fill(index, docs=3, per_doc=3)
    index.release_resident()
    first_id = index.segment_infos()[0].segment_id
    real_read = SegmentStorage.read_segment

    def flaky_read(self, info):
        if info.segment_id != first_id:
            raise MemoryError("simulated")
        return real_read(self, info)

    monkeypatch.setattr(SegmentStorage, "read_segment", flaky_read)

    stats = ScanStats()
    views = list(index.query_segments(stats=stats))

    assert stats.partial
    assert [v.segment.segment_id for v in views] == [first_id]
    assert index.diagnostics.get("oom_retries") == 1


def test_segment_reads_do_not_hold_cache_lock(index, monkeypatch):
    _fill(index, docs=3, per_doc=3)
    index.release_resident()
    real_read = SegmentStorage.read_segment
    lock_held = []

    def checking_read(self, info):
        lock_held.append(index._cache_lock.locked())
        return real_read(self, info)

    monkeypatch.setattr(SegmentStorage, "read_segment", checking_read)
    list(index.query_segments())

    assert lock_held == [False, False, False]


def test_cache_hit_is_served_while_another_segment_loads(index, monkeypatch):
    _fill(index, docs=3, per_doc=3)
    index.release_resident()
    hot, slow = index.segment_infos()[0], index.segment_infos()[2]
    index._acquire(hot)
    real_read = SegmentStorage.read_segment
    reading, release = threading.Event(), threading.Event()

    def slow_read(self, info):
        if info.segment_id == slow.segment_id:
            reading.set()
            release.wait(5)
        return real_read(self, info)

    monkeypatch.setattr(SegmentStorage, "read_segment", slow_read)
    loader = threading.Thread(target=index._acquire, args=(slow,))
    loader.start()
    assert reading.wait(5)

    hits = index.diagnostics.get("cache_hits")
    reader = threading.Thread(target=index._acquire, args=(hot,))
    reader.start()
    reader.join(2)
    blocked = reader.is_alive()
    release.set()
    loader.join(5)
    reader.join(5)

    assert not blocked
    assert index.diagnostics.get("cache_hits") == hits + 1
    assert index.resident_segment_count <= 2


def test_concurrent_scans_respect_resident_budget(index):
    _fill(index, docs=6, per_doc=3)
    index.release_resident()
    errors = []

    def scan():
        try:
            for _ in range(10):
                assert len([r for v in index.query_segments() for r in v.segment.records]) == 18
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=scan) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert index.resident_segment_count <= 2


def test_compaction_worker_start_stop_idempotent(index):
    worker = CompactionWorker(index, interval_sec=0.05, min_tombstone_ratio=0.0)
    _fill(index, docs=1, per_doc=3)
    index.delete("doc-0")

    worker.start()
    worker.start()
    deadline = time.time() + 5
    while index.stats()["tombstoned_records"] and time.time() < deadline:
        time.sleep(0.05)
    worker.stop()
    worker.stop()

    assert index.stats()["tombstoned_records"] == 0
    assert not worker.running


def test_unit_helper_normalises():
    assert np.isclose(np.linalg.norm(unit(3, 4)), 1.0)
