# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-16
# Description: Reranker
# -----------------------------------------------------------------------------
from dataclasses import replace
from typing import Callable, List, Sequence

from similarity.QueryResult import QueryResult

# (query, candidates) -> one relevance score per candidate, higher is better
Reranker = Callable[[str, Sequence[QueryResult]], Sequence[float]]


def rerank(query: str, results: Sequence[QueryResult], scorer: Reranker, k: int) -> List[QueryResult]:
    """
    Re-score `results` with `scorer` and keep the best k.
    Equal scores keep their similarity order.
    """
    if k <= 0 or not results:
        return []

    scores = list(scorer(query, results))
    if len(scores) != len(results):
        raise ValueError(f"Reranker returned {len(scores)} scores for {len(results)} results")

    rescored = [replace(r, score=float(s)) for r, s in zip(results, scores)]
    order = sorted(range(len(rescored)), key=lambda i: -rescored[i].score)
    return [rescored[i] for i in order[:k]]
