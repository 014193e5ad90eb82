# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-28
# Updated: 2026-02-15
# Description: test_tutor_chat_service.py
# -----------------------------------------------------------------------------
import pytest

from conftest import FakeChatClient
from config.Config import Config
from services.RetrievalService import RetrievalService
from chat.RelevanceScorer import RelevanceScorer
from services.TutorChatService import TutorChatService, build_prompt, subject_line


@pytest.fixture
def retrieval(cfg, fallback_provider):
    svc = RetrievalService(cfg=cfg, provider=fallback_provider)
    yield svc
    svc.close()


def test_subject_line():
    assert subject_line("EARTH_SCIENCE") == "You are answering a question about earth science."
    assert subject_line(None) == "You are a helpful educational assistant."


def test_prompt_layout():
    prompt = build_prompt("Why are leaves green?", "Chlorophyll is green.", "biology")
    assert prompt.startswith("You are answering a question about biology.")
    assert "Context:\nChlorophyll is green." in prompt
    assert "Question: Why are leaves green?" in prompt
    assert prompt.endswith("Answer:")


def test_chat_is_grounded_on_retrieved_context(retrieval):
    retrieval.ingest("bio-101", "Chlorophyll absorbs light energy in the leaves.", category="biology")
    client = FakeChatClient()
    svc = TutorChatService(retrieval_service=retrieval, chat_client=client)

    out = svc.chat(user_query="What does chlorophyll absorb?", category="biology")

    assert out["answer"] == "Chlorophyll absorbs light."
    assert out["grounded"] is True
    assert [s["record_id"] for s in out["sources"]] == ["bio-101_0"]
    assert out["model"] == "fake-chat"
    prompt = client.messages[-1]["content"]
    assert "Chlorophyll absorbs light energy in the leaves." in prompt
    assert prompt.startswith("You are answering a question about biology.")


def test_chat_without_context_reports_ungrounded(retrieval):
    client = FakeChatClient(answer="I don't know.")
    svc = TutorChatService(retrieval_service=retrieval, chat_client=client)

    out = svc.chat(user_query="What is a volcano?")

    assert out["grounded"] is False
    assert out["sources"] == []
    assert "(no retrieved context)" in client.messages[-1]["content"]


def test_history_is_sent_before_question(retrieval):
    client = FakeChatClient()
    svc = TutorChatService(retrieval_service=retrieval, chat_client=client)
    history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]

    svc.chat(user_query="Next question", conversation=history)

    assert client.messages[:2] == history
    assert client.messages[-1]["role"] == "user"


def test_empty_question_rejected(retrieval):
    svc = TutorChatService(retrieval_service=retrieval, chat_client=FakeChatClient())
    with pytest.raises(ValueError):
        svc.chat(user_query="  ")


def test_rerank_changes_which_passage_grounds_the_answer(retrieval):
    retrieval.ingest("bio-101", "Chlorophyll absorbs light energy in the leaves.", category="science")
    retrieval.ingest("geo-101", "Chlorophyll is absent from volcanic rock.", category="science")
    client = FakeChatClient()

    def prefers_rock(query, results):
        return [1.0 if "rock" in r.text else 0.0 for r in results]

    svc = TutorChatService(retrieval_service=retrieval, chat_client=client, reranker=prefers_rock)

    plain = svc.chat(user_query="What does chlorophyll absorb?", k=1)
    reranked = svc.chat(user_query="What does chlorophyll absorb?", k=1, rerank=True)

    assert plain["retrieval"]["reranked"] is False
    assert reranked["retrieval"]["reranked"] is True
    assert [s["record_id"] for s in reranked["sources"]] == ["geo-101_0"]
    assert "volcanic rock" in client.messages[-1]["content"]


def test_default_reranker_asks_the_chat_model():
    svc = TutorChatService(retrieval_service=None, chat_client=FakeChatClient(), rerank=True)
    assert isinstance(svc.reranker, RelevanceScorer)
    assert svc.reranker.chat_client is svc.chat_client


@pytest.mark.integration
def test_openai_chat_round_trip():
    from chat.OpenAIChat import OpenAIChat

    cfg = Config.from_env()
    if not cfg.openai_api_key:
        pytest.skip("OPENAI_API_KEY not configured")
    out = OpenAIChat(cfg=cfg).simple_chat("Reply with the single word: pong", max_tokens=5)
    assert out["answer"]
