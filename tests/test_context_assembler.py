# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-15
# Description: test_context_assembler.py
# -----------------------------------------------------------------------------
import pytest

from assembly.ContextAssembler import ContextAssembler
from similarity.QueryResult import QueryResult


def _hit(doc, idx, score, text, start=None, end=None):
    return QueryResult(
        record_id=f"{doc}_{idx}",
        score=score,
        text=text,
        source_document_id=doc,
        chunk_index=idx,
        start_offset=start,
        end_offset=end,
    )


def test_empty_results_or_budget_give_empty_context():
    assembler = ContextAssembler()
    assert assembler.assemble([], 100).context_text == ""
    ctx = assembler.assemble([_hit("a", 0, 0.9, "text")], 0)
    assert ctx.context_text == ""
    assert ctx.used_record_ids == []


def test_score_order_and_separator():
    results = [
        _hit("a", 1, 0.5, "second"),
        _hit("b", 0, 0.9, "first"),
    ]
    ctx = ContextAssembler().assemble(results, 100)
    assert ctx.context_text == "first\n\nsecond"
    assert ctx.used_record_ids == ["b_0", "a_1"]
    assert not ctx.truncated


def test_document_order_keeps_narrative_sequence():
    results = [
        _hit("lesson", 2, 0.95, "Finally, plants release oxygen."),
        _hit("other", 0, 0.90, "Unrelated note."),
        _hit("lesson", 0, 0.80, "Plants absorb light."),
    ]
    ctx = ContextAssembler(order="document").assemble(results, 500)
    assert ctx.used_record_ids == ["lesson_0", "lesson_2", "other_0"]


def test_budget_truncates_last_chunk_exactly():
    results = [
        _hit("a", 0, 0.9, "x" * 30),
        _hit("b", 0, 0.8, "y" * 30),
    ]
    # 10 tokens * 4 chars = 40 characters
    ctx = ContextAssembler(chars_per_token=4).assemble(results, 10)

    assert len(ctx.context_text) == 40
    assert ctx.context_text == "x" * 30 + "\n\n" + "y" * 8
    assert ctx.truncated
    assert ctx.used_record_ids == ["a_0", "b_0"]
    assert ctx.estimated_tokens == 10


def test_overlapping_chunks_of_same_document_are_deduplicated():
    results = [
        _hit("doc", 0, 0.9, "a" * 100, start=0, end=100),
        _hit("doc", 1, 0.8, "b" * 100, start=10, end=110),
        _hit("doc", 2, 0.7, "c" * 100, start=80, end=180),
    ]
    ctx = ContextAssembler(dedup_overlap_ratio=0.8).assemble(results, 1000)
    assert ctx.used_record_ids == ["doc_0", "doc_2"]


def test_near_identical_text_across_documents_is_deduplicated():
    passage = "The water cycle describes evaporation, condensation and precipitation."
    results = [
        _hit("book", 3, 0.9, passage),
        _hit("notes", 7, 0.85, passage + " See chapter 2."),
        _hit("quiz", 1, 0.6, "Name the three stages of the water cycle."),
    ]
    ctx = ContextAssembler().assemble(results, 1000)
    assert ctx.used_record_ids == ["book_3", "quiz_1"]


def test_source_tags_prefix_record_ids():
    ctx = ContextAssembler(source_tags=True).assemble([_hit("a", 0, 0.9, "hello")], 100)
    assert ctx.context_text == "[a_0]: hello"


def test_invalid_order_rejected():
    with pytest.raises(ValueError):
        ContextAssembler(order="random")
