# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-03
# Description: PseudoEmbedding
# -----------------------------------------------------------------------------
import hashlib
import re

import numpy as np

from embedding.VectorMath import l2_normalize

PSEUDO_VERSION_PREFIX = "pseudo-hash"

_TOKEN = re.compile(r"\w+", re.UNICODE)


def pseudo_model_version(dimensions: int) -> str:
    """Version tag for vectors produced by pseudo_embedding (never comparable to a real model)."""
    return f"{PSEUDO_VERSION_PREFIX}@{dimensions}"


def _stable_hash(value: str) -> int:
    digest = hashlib.blake2b(value.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "little")


def pseudo_embedding(text: str, dimensions: int) -> np.ndarray:
    """
    Deterministic degraded-mode embedding.

    Each lower-cased word token is feature-hashed into a signed bucket, so
    texts sharing vocabulary still land near each other. Text without tokens
    (or whose buckets cancel out) is seeded from the sha256 of the raw text.
    Same input -> bit-identical float32 vector, across processes.
    """
    if dimensions < 2:
        raise ValueError(f"dimensions must be >= 2, got {dimensions}")

    vec = np.zeros(dimensions, dtype=np.float64)
    for token in _TOKEN.findall(text.lower()):
        h = _stable_hash(token)
        sign = -1.0 if (h >> 63) & 1 else 1.0
        vec[h % dimensions] += sign

    if not np.any(vec):
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "little")
        vec = np.random.default_rng(seed).standard_normal(dimensions)

    return l2_normalize(vec)
