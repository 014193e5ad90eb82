# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-03
# Description: EmbeddingModel
# -----------------------------------------------------------------------------
from typing import Callable, Protocol, Sequence, runtime_checkable

import numpy as np

from embedding.ModelVariant import ModelVariant


@runtime_checkable
class EmbeddingModel(Protocol):
    variant: ModelVariant

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """Return a (len(texts), variant.dimensions) array of raw embeddings."""
        ...

    def close(self) -> None:
        ...


# Builds the model for a variant; raises ModelUnavailable when it cannot.
ModelFactory = Callable[[ModelVariant], EmbeddingModel]
