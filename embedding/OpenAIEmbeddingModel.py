# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-14
# Updated: 2026-02-03
# Description: OpenAIEmbeddingModel
# -----------------------------------------------------------------------------
import time
from typing import Any, Optional, Sequence

import numpy as np
from openai import OpenAI

from config.Config import Config
from embedding.ModelVariant import ModelVariant
from utility.errors import ModelUnavailable
from utility.logging_utils import get_class_logger


class OpenAIEmbeddingModel:
    """
    Embedding backend on the OpenAI embeddings endpoint.
    Returns raw float32 vectors; normalisation is the provider's job.
    """

    def __init__(
            self,
            variant: ModelVariant,
            cfg: Config,
            *,
            client: Optional[Any] = None,
            max_retries: int = 5,
            logger=None,
    ):
        self.variant = variant
        self.max_retries = max_retries
        self.logger = logger or get_class_logger(self.__class__)

        if client is None:
            if not cfg.openai_api_key:
                raise ModelUnavailable("OPENAI_API_KEY is not configured")
            client = OpenAI(
                api_key=cfg.openai_api_key,
                base_url=cfg.openai_base_url or None,
            )
        self.client = client
        self.logger.info(
            "OpenAI embedding model initialised '%s' (dimensions=%d)",
            variant.model_name,
            variant.dimensions,
        )

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        if not texts:
            return np.empty((0, self.variant.dimensions), dtype=np.float32)

        delay = 0.8
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self.client.embeddings.create(
                    model=self.variant.model_name,
                    input=list(texts),
                    dimensions=self.variant.dimensions,
                )
                arr = np.asarray([d.embedding for d in resp.data], dtype=np.float32)
                if arr.shape != (len(texts), self.variant.dimensions):
                    raise ValueError(
                        f"Unexpected embedding shape {arr.shape}, "
                        f"expected ({len(texts)}, {self.variant.dimensions})"
                    )
                return arr

            except Exception as e:
                self.logger.warning(
                    "Embedding batch failed (attempt %d/%d): %s", attempt, self.max_retries, e
                )
                if attempt == self.max_retries:
                    raise ModelUnavailable(f"Embedding backend failed: {e}") from e
                time.sleep(delay)
                delay *= 1.7  # backoff

        # Unreachable and include for type checkers
        return np.empty((0, self.variant.dimensions), dtype=np.float32)

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()
        self.logger.debug("OpenAI embedding model '%s' closed", self.variant.model_name)


def open_openai_model(cfg: Config):
    """ModelFactory bound to a Config."""

    def _factory(variant: ModelVariant) -> OpenAIEmbeddingModel:
        return OpenAIEmbeddingModel(variant, cfg)

    return _factory


