# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-27
# Updated: 2026-02-13
# Description: TutorChatService.py
# -----------------------------------------------------------------------------
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from chat.OpenAIChat import Message, OpenAIChat
from chat.RelevanceScorer import RelevanceScorer
from services.RetrievalService import RetrievalService
from similarity.Reranker import Reranker
from settings import CHAT_DEFAULTS
from utility.logging_utils import get_class_logger

NO_CONTEXT = "(no retrieved context)"


def subject_line(category: Optional[str]) -> str:
    if category:
        return f"You are answering a question about {category.lower().replace('_', ' ')}."
    return "You are a helpful educational assistant."


def build_prompt(question: str, context: str, category: Optional[str] = None) -> str:
    return (
        f"{subject_line(category)}\n\n"
        "Use the following context to answer the question. "
        "If the answer cannot be found in the context, say so.\n\n"
        f"Context:\n{context or NO_CONTEXT}\n\n"
        f"Question: {question}\n\n"
        "Answer:"
    )


@dataclass
class TutorChatService:
    """
    Grounded tutoring chat:
        - retrieves a budgeted context through RetrievalService, optionally
          reranking the candidates with the chat model
        - builds the subject-aware prompt
        - calls the text-generation collaborator
        - returns answer + the passages that grounded it
    """
    retrieval_service: RetrievalService
    chat_client: OpenAIChat
    logger: Optional[logging.Logger] = None

    default_temperature: float = CHAT_DEFAULTS["temperature"]
    default_max_tokens: int = CHAT_DEFAULTS["max_tokens"]

    rerank: bool = False
    reranker: Optional[Reranker] = None

    def __post_init__(self) -> None:
        self.logger = self.logger or get_class_logger(self.__class__)
        if self.reranker is None:
            self.reranker = RelevanceScorer(self.chat_client)

    def chat(
            self,
            *,
            user_query: str,
            k: Optional[int] = None,
            category: Optional[str] = None,
            min_score: Optional[float] = None,
            token_budget: Optional[int] = None,
            conversation: Optional[List[Message]] = None,
            temperature: Optional[float] = None,
            max_tokens: Optional[int] = None,
            rerank: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Returns:
        {
            "question": str,
            "answer": str,
            "grounded": bool,
            "sources": [QueryResult.to_dict(), ...],   # only passages used in the context
            "retrieval": {"k", "category", "model_version", "partial", "reranked", "estimated_tokens"},
            "model": str|None,
            "usage": Any|None,
        }
        """
        q = (user_query or "").strip()
        if not q:
            raise ValueError("user_query must not be empty")

        conversation = conversation or []
        self.logger.info(
            "chat: query='%s' k=%s category=%s conv_turns=%d (start)",
            q[:120],
            k,
            category,
            len(conversation),
        )

        use_rerank = self.rerank if rerank is None else rerank
        retrieval = self.retrieval_service.retrieve(
            q,
            k=k,
            category=category,
            min_score=min_score,
            token_budget=token_budget,
            reranker=self.reranker if use_rerank else None,
        )
        if not retrieval.grounded:
            self.logger.warning("chat: no context retrieved; answering ungrounded")

        messages: List[Message] = list(conversation)
        messages.append({"role": "user", "content": build_prompt(q, retrieval.context_text, category)})

        temp = self.default_temperature if temperature is None else temperature
        mtok = self.default_max_tokens if max_tokens is None else max_tokens
        resp = self.chat_client.chat(messages, temperature=temp, max_tokens=mtok)

        try:
            answer = resp.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            self.logger.error("chat: unexpected chat response: %s", e, exc_info=True)
            raise RuntimeError(f"Unexpected chat response format: {e}") from e

        used = set(retrieval.used_record_ids)
        sources = [r.to_dict() for r in retrieval.results if r.record_id in used]

        self.logger.info("chat: answer_chars=%d sources=%d (done)", len(answer), len(sources))
        usage = getattr(resp, "usage", None)
        return {
            "question": q,
            "answer": answer,
            "grounded": retrieval.grounded,
            "sources": sources,
            "retrieval": {
                "k": k,
                "category": category,
                "model_version": retrieval.model_version,
                "partial": retrieval.partial,
                "reranked": retrieval.reranked,
                "estimated_tokens": retrieval.estimated_tokens,
            },
            "model": getattr(resp, "model", None),
            "usage": usage.model_dump() if hasattr(usage, "model_dump") else usage,
        }
