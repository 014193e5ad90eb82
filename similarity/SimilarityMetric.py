# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-07
# Description: SimilarityMetric
# -----------------------------------------------------------------------------
from typing import Dict

import numpy as np

from embedding.VectorMath import l2_normalize


class SimilarityMetric:
    """Scores a query vector against a (n, dim) matrix of stored vectors."""

    name = "base"

    def prepare_query(self, query: np.ndarray) -> np.ndarray:
        return np.asarray(query, dtype=np.float32).reshape(-1)

    def score(self, query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
        raise NotImplementedError


class CosineMetric(SimilarityMetric):
    """Dot product of L2-normalised vectors. Stored vectors are already unit length."""

    name = "cosine"

    def prepare_query(self, query: np.ndarray) -> np.ndarray:
        return l2_normalize(query)

    def score(self, query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
        return matrix @ query


class DotProductMetric(SimilarityMetric):
    name = "dot"

    def score(self, query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
        return matrix @ query


_METRICS: Dict[str, SimilarityMetric] = {
    CosineMetric.name: CosineMetric(),
    DotProductMetric.name: DotProductMetric(),
}


def get_metric(name: str) -> SimilarityMetric:
    try:
        return _METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown similarity metric '{name}'. Known: {sorted(_METRICS)}") from None
