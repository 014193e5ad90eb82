# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-12
# Updated: 2026-02-15
# Description: conftest.py
# -----------------------------------------------------------------------------

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import List, Optional, Sequence

import numpy as np
import pytest

# add project root to sys.path
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from config.Config import Config  # noqa: E402
from embedding.EmbeddingProvider import EmbeddingProvider  # noqa: E402
from embedding.EmbeddingRecord import EmbeddingRecord, make_record_id  # noqa: E402
from embedding.ModelVariant import ModelVariant  # noqa: E402
from embedding.PseudoEmbedding import pseudo_embedding  # noqa: E402
from embedding.VectorMath import l2_normalize  # noqa: E402
from utility.errors import ModelUnavailable  # noqa: E402

TINY_VARIANT = ModelVariant("tiny", "fake-embed", 16)
OTHER_VARIANT = ModelVariant("tiny-v2", "fake-embed-v2", 16)


class FakeEmbeddingModel:
    """In-process stand-in for a real embedding backend. Deterministic, un-normalised output."""

    def __init__(self, variant: ModelVariant, fail_after: Optional[int] = None):
        self.variant = variant
        self.fail_after = fail_after
        self.calls = 0
        self.closed = False

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        self.calls += 1
        if self.fail_after is not None and self.calls > self.fail_after:
            raise ModelUnavailable("fake backend went away")
        rows = [pseudo_embedding("model:" + t, self.variant.dimensions) * 3.0 for t in texts]
        return np.asarray(rows, dtype=np.float32)

    def close(self) -> None:
        self.closed = True


class FakeModelFactory:
    def __init__(self, fail_after: Optional[int] = None, unavailable: bool = False):
        self.fail_after = fail_after
        self.unavailable = unavailable
        self.created: List[FakeEmbeddingModel] = []

    def __call__(self, variant: ModelVariant) -> FakeEmbeddingModel:
        if self.unavailable:
            raise ModelUnavailable(f"{variant.name} is not installed")
        model = FakeEmbeddingModel(variant, fail_after=self.fail_after)
        self.created.append(model)
        return model


class FakeChatClient:
    """Records the last message list and answers with a canned completion."""

    def __init__(self, answer: str = "Chlorophyll absorbs light."):
        self.answer = answer
        self.messages = None

    def chat(self, messages, temperature=0.0, max_tokens=512, **kwargs):
        self.messages = messages
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.answer))],
            model="fake-chat",
            usage={"total_tokens": 42},
        )


def unit(*values: float) -> np.ndarray:
    return l2_normalize(np.asarray(values, dtype=np.float32))


def make_record(
        doc_id: str,
        chunk_index: int,
        vector,
        model_version: str = "test@2",
        text: Optional[str] = None,
        category: Optional[str] = None,
) -> EmbeddingRecord:
    return EmbeddingRecord(
        id=make_record_id(doc_id, chunk_index),
        source_document_id=doc_id,
        chunk_index=chunk_index,
        text=text if text is not None else f"{doc_id} chunk {chunk_index}",
        vector=unit(*vector) if not isinstance(vector, np.ndarray) else vector,
        model_version=model_version,
        category=category,
    )


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(
        index_dir=str(tmp_path / "index"),
        segment_size=4,
        max_resident_segments=2,
        chunk_max_size=120,
        chunk_overlap=20,
        embedding_variant="openai-small",
        fallback_dimensions=32,
        embedding_batch_size=4,
        default_k=3,
        token_budget=200,
        openai_api_key="",
    )


@pytest.fixture
def fake_factory() -> FakeModelFactory:
    return FakeModelFactory()


@pytest.fixture
def provider(fake_factory) -> EmbeddingProvider:
    p = EmbeddingProvider(model_factory=fake_factory, fallback_dimensions=32, batch_size=4)
    p.load(TINY_VARIANT)
    yield p
    p.close()


@pytest.fixture
def fallback_provider() -> EmbeddingProvider:
    """Provider with no backend at all: every vector is a pseudo-embedding."""
    p = EmbeddingProvider(model_factory=None, fallback_enabled=True, fallback_dimensions=32)
    yield p
    p.close()
