# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-16
# Description: RelevanceScorer
# -----------------------------------------------------------------------------
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from similarity.QueryResult import QueryResult
from utility.logging_utils import get_class_logger

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def build_relevance_prompt(query: str, passage: str, max_chars: int = 256) -> str:
    snippet = passage[:max_chars] + ("..." if len(passage) > max_chars else "")
    return (
        "On a scale of 0-10, rate how relevant this document is to the query.\n"
        "Return only a number.\n\n"
        f"Query: {query}\n\n"
        f"Document: {snippet}\n\n"
        "Relevance score:"
    )


def parse_relevance(text: Optional[str]) -> float:
    """First number in the reply, clamped to [0, 10] and scaled to [0, 1]. Unparseable -> 0."""
    match = _NUMBER.search(text or "")
    if match is None:
        return 0.0
    return min(max(float(match.group()), 0.0), 10.0) / 10.0


@dataclass
class RelevanceScorer:
    """
    Reranker backed by the chat model: asks for a 0-10 relevance rating of
    each candidate passage. Usable as `RetrievalService.retrieve(reranker=...)`.
    """

    chat_client: Any
    max_passage_chars: int = 256
    temperature: float = 0.1
    max_tokens: int = 10
    logger: Any = None

    def __post_init__(self) -> None:
        self.logger = self.logger or get_class_logger(self.__class__)

    def __call__(self, query: str, results: Sequence[QueryResult]) -> List[float]:
        scores = [self._score(query, r) for r in results]
        self.logger.debug("Reranked %d candidates for query='%s'", len(scores), query[:80])
        return scores

    def _score(self, query: str, result: QueryResult) -> float:
        prompt = build_relevance_prompt(query, result.text, self.max_passage_chars)
        resp = self.chat_client.chat(
            [{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        try:
            reply = resp.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise RuntimeError(f"Unexpected chat response format: {e}") from e

        score = parse_relevance(reply)
        if score == 0.0 and not _NUMBER.search(reply or ""):
            self.logger.warning("Non-numeric relevance reply for %s: %r", result.record_id, reply)
        return score
