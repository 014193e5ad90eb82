# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-03
# Description: VectorMath
# -----------------------------------------------------------------------------
from typing import Sequence, Union

import numpy as np

NORM_TOLERANCE = 1e-3

VectorLike = Union[np.ndarray, Sequence[float]]


def l2_normalize(vector: VectorLike) -> np.ndarray:
    """Scale a vector to unit Euclidean norm (scale = 1 / sqrt(sum(v_i^2)))."""
    arr = np.asarray(vector, dtype=np.float64).reshape(-1)
    norm = float(np.sqrt(np.dot(arr, arr)))
    if norm == 0.0 or not np.isfinite(norm):
        raise ValueError("Cannot normalize a zero or non-finite vector")
    return (arr * (1.0 / norm)).astype(np.float32)


def l2_normalize_rows(matrix: np.ndarray) -> np.ndarray:
    arr = np.asarray(matrix, dtype=np.float64)
    norms = np.linalg.norm(arr, axis=1, keepdims=True)
    if np.any(norms == 0.0) or not np.all(np.isfinite(norms)):
        raise ValueError("Cannot normalize a zero or non-finite row")
    return (arr / norms).astype(np.float32)


def is_normalized(vector: VectorLike, tolerance: float = NORM_TOLERANCE) -> bool:
    arr = np.asarray(vector, dtype=np.float64).reshape(-1)
    return abs(float(np.dot(arr, arr)) - 1.0) <= tolerance
