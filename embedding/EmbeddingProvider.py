# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-14
# Updated: 2026-02-05
# Description: EmbeddingProvider
# -----------------------------------------------------------------------------
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from config.Config import Config
from embedding.EmbeddingModel import EmbeddingModel, ModelFactory
from embedding.ModelVariant import ModelVariant, resolve_variant
from embedding.OpenAIEmbeddingModel import open_openai_model
from embedding.PseudoEmbedding import pseudo_embedding, pseudo_model_version
from embedding.VectorMath import l2_normalize
from utility.cancellation import CancellationToken
from utility.errors import ModelNotLoaded, ModelUnavailable
from utility.logging_utils import get_class_logger


class EmbeddingProvider:
    """
    Owns the embedding model's lifecycle and turns text into L2-normalised vectors.

    - load / embed / close are serialised by one mutex, so a model switch can
      never race an in-flight embedding call.
    - With the fallback policy enabled, a missing or failing model degrades to
      deterministic pseudo-embeddings (tagged with their own model version)
      instead of raising.
    """

    def __init__(
            self,
            *,
            model_factory: Optional[ModelFactory] = None,
            fallback_enabled: bool = True,
            fallback_dimensions: int = 384,
            cache_size: int = 1000,
            batch_size: int = 32,
            logger=None,
    ):
        self.model_factory = model_factory
        self.fallback_enabled = fallback_enabled
        self.fallback_dimensions = fallback_dimensions
        self.cache_size = cache_size
        self.batch_size = batch_size
        self.logger = logger or get_class_logger(self.__class__)

        self._lock = threading.Lock()
        self._model: Optional[EmbeddingModel] = None
        self._variant: Optional[ModelVariant] = None
        self._cache: "OrderedDict[Tuple[str, str], np.ndarray]" = OrderedDict()
        self._fallback_logged = False
        self.fallback_embeddings = 0

    @classmethod
    def from_config(cls, cfg: Config, model_factory: Optional[ModelFactory] = None) -> "EmbeddingProvider":
        return cls(
            model_factory=model_factory or open_openai_model(cfg),
            fallback_enabled=cfg.embedding_fallback,
            fallback_dimensions=cfg.fallback_dimensions,
            cache_size=cfg.embedding_cache_size,
            batch_size=cfg.embedding_batch_size,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, variant: Union[str, ModelVariant]) -> None:
        """Initialise (or switch) the model. Re-loading the active variant is a no-op."""
        variant = resolve_variant(variant)

        with self._lock:
            if self._variant == variant and self._model is not None:
                return

            self._release_locked()
            self._variant = variant

            if self.model_factory is None:
                self._unavailable_locked(variant, ModelUnavailable("no model factory configured"))
                return

            try:
                self._model = self.model_factory(variant)
            except ModelUnavailable as e:
                self._unavailable_locked(variant, e)
                return

            self.logger.info(
                "Embedding model loaded: variant=%s version=%s",
                variant.name,
                variant.version,
            )

    def _unavailable_locked(self, variant: ModelVariant, error: ModelUnavailable) -> None:
        if not self.fallback_enabled:
            self._variant = None
            raise error
        self._log_fallback_once(f"variant '{variant.name}' unavailable: {error}")

    def _degrade_locked(self, error: ModelUnavailable) -> None:
        """Drop a failing model; stay on pseudo-embeddings until the next load()."""
        if not self.fallback_enabled:
            raise error
        self._log_fallback_once(str(error))
        model, self._model = self._model, None
        if model is not None:
            try:
                model.close()
            except Exception as e:
                self.logger.warning("Error while closing embedding model: %s", e)

    def _release_locked(self) -> None:
        if self._model is not None:
            try:
                self._model.close()
            except Exception as e:
                self.logger.warning("Error while closing embedding model: %s", e)
        self._model = None
        self._variant = None
        self._cache.clear()

    def close(self) -> None:
        """Release the model and clear loaded-variant state. Safe to call repeatedly."""
        with self._lock:
            was_loaded = self._variant is not None
            self._release_locked()
        if was_loaded:
            self.logger.info("Embedding provider closed")

    def __enter__(self) -> "EmbeddingProvider":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def loaded_variant(self) -> Optional[ModelVariant]:
        return self._variant

    @property
    def is_degraded(self) -> bool:
        return self._model is None

    @property
    def model_version(self) -> str:
        """Version tag of the vectors embed() would return right now."""
        with self._lock:
            return self._current_version_locked()

    def _current_version_locked(self) -> str:
        if self._model is not None and self._variant is not None:
            return self._variant.version
        if self.fallback_enabled:
            return pseudo_model_version(self.fallback_dimensions)
        raise ModelNotLoaded("Call load() first")

    def _log_fallback_once(self, reason: str) -> None:
        if not self._fallback_logged:
            self._fallback_logged = True
            self.logger.warning(
                "Embedding model unavailable (%s); using deterministic pseudo-embeddings "
                "for the rest of this session",
                reason,
            )
        else:
            self.logger.debug("Pseudo-embedding fallback: %s", reason)

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    def embed(self, text: str) -> np.ndarray:
        """Returns the L2-normalised embedding for a passage or query."""
        return self.embed_with_version(text)[0]

    def embed_with_version(self, text: str) -> Tuple[np.ndarray, str]:
        with self._lock:
            version = self._current_version_locked()

            cached = self._cache_get((version, text))
            if cached is not None:
                return cached, version

            vec: Optional[np.ndarray] = None
            if self._model is not None:
                try:
                    vec = l2_normalize(self._model.embed_texts([text])[0])
                except ModelUnavailable as e:
                    self._degrade_locked(e)

            if vec is None:
                vec = self._pseudo_locked(text)
                version = pseudo_model_version(self.fallback_dimensions)

            vec.setflags(write=False)
            self._cache_put((version, text), vec)
            return vec, version

    def embed_batch(
            self,
            texts: Sequence[str],
            *,
            cancel_token: Optional[CancellationToken] = None,
    ) -> Tuple[List[np.ndarray], str]:
        """
        Embed many passages under a single model version.
        If the model fails part-way the whole batch is redone with the fallback,
        so callers never receive mixed embedding spaces.
        """
        texts = list(texts)
        with self._lock:
            version = self._current_version_locked()

            if self._model is not None:
                try:
                    out: List[np.ndarray] = []
                    for i in range(0, len(texts), self.batch_size):
                        if cancel_token is not None:
                            cancel_token.raise_if_cancelled("embedding batch")
                        raw = self._model.embed_texts(texts[i:i + self.batch_size])
                        out.extend(l2_normalize(row) for row in raw)
                    self.logger.debug("Embedded %d passages (version=%s)", len(out), version)
                    return out, version
                except ModelUnavailable as e:
                    self._degrade_locked(e)

            out = []
            for i, text in enumerate(texts):
                if cancel_token is not None and i % self.batch_size == 0:
                    cancel_token.raise_if_cancelled("embedding batch")
                out.append(self._pseudo_locked(text))
            return out, pseudo_model_version(self.fallback_dimensions)

    def _pseudo_locked(self, text: str) -> np.ndarray:
        self.fallback_embeddings += 1
        return pseudo_embedding(text, self.fallback_dimensions)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cache_get(self, key: Tuple[str, str]) -> Optional[np.ndarray]:
        vec = self._cache.get(key)
        if vec is not None:
            self._cache.move_to_end(key)
        return vec

    def _cache_put(self, key: Tuple[str, str], vec: np.ndarray) -> None:
        if self.cache_size <= 0:
            return
        self._cache[key] = vec
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "loaded_variant": self._variant.name if self._variant else None,
                "model_version": self._current_version_locked() if (
                    self._model is not None or self.fallback_enabled
                ) else None,
                "degraded": self._model is None,
                "fallback_enabled": self.fallback_enabled,
                "fallback_embeddings": self.fallback_embeddings,
                "cache_entries": len(self._cache),
            }
