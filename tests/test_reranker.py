# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-16
# Description: test_reranker.py
# -----------------------------------------------------------------------------
from types import SimpleNamespace

import pytest

from chat.RelevanceScorer import RelevanceScorer, build_relevance_prompt, parse_relevance
from similarity.QueryResult import QueryResult
from similarity.Reranker import rerank


def _result(record_id, score, text="passage"):
    doc, idx = record_id.rsplit("_", 1)
    return QueryResult(record_id=record_id, score=score, text=text, source_document_id=doc, chunk_index=int(idx))


class ScriptedChatClient:
    """Answers each chat call with the next scripted reply."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.prompts = []

    def chat(self, messages, temperature=0.0, max_tokens=512, **kwargs):
        self.prompts.append(messages[-1]["content"])
        reply = self.replies.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


def test_rerank_orders_by_new_scores_and_trims():
    results = [_result("a_0", 0.9), _result("b_0", 0.8), _result("c_0", 0.7), _result("d_0", 0.6)]

    out = rerank("q", results, lambda q, rs: [0.1, 0.4, 0.9, 0.2], k=2)

    assert [r.record_id for r in out] == ["c_0", "b_0"]
    assert [r.score for r in out] == [0.9, 0.4]


def test_rerank_keeps_similarity_order_on_equal_scores():
    results = [_result("a_0", 0.9), _result("b_0", 0.8), _result("c_0", 0.7)]
    out = rerank("q", results, lambda q, rs: [0.5, 0.5, 0.5], k=3)
    assert [r.record_id for r in out] == ["a_0", "b_0", "c_0"]


def test_rerank_rejects_wrong_number_of_scores():
    with pytest.raises(ValueError):
        rerank("q", [_result("a_0", 0.9), _result("b_0", 0.8)], lambda q, rs: [1.0], k=1)


def test_rerank_with_no_candidates():
    assert rerank("q", [], lambda q, rs: [], k=3) == []
    assert rerank("q", [_result("a_0", 0.9)], lambda q, rs: [1.0], k=0) == []


@pytest.mark.parametrize(
    "reply,expected",
    [("7", 0.7), (" 10 ", 1.0), ("Score: 8.5/10", 0.85), ("42", 1.0), ("-3", 0.0), ("not sure", 0.0), (None, 0.0)],
)
def test_parse_relevance(reply, expected):
    assert parse_relevance(reply) == pytest.approx(expected)


def test_relevance_prompt_truncates_passage():
    prompt = build_relevance_prompt("what is lava?", "x" * 400, max_chars=256)
    assert "Query: what is lava?" in prompt
    assert "x" * 256 + "..." in prompt
    assert "x" * 257 not in prompt
    assert prompt.endswith("Relevance score:")


def test_relevance_scorer_asks_once_per_candidate():
    client = ScriptedChatClient(["2", "9", "banana"])
    scorer = RelevanceScorer(client)
    results = [_result("a_0", 0.9, "photosynthesis"), _result("b_0", 0.8, "lava"), _result("c_0", 0.7, "ash")]

    scores = scorer("volcano", results)

    assert scores == pytest.approx([0.2, 0.9, 0.0])
    assert len(client.prompts) == 3
    assert "Document: lava" in client.prompts[1]
