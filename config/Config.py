# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-08
# Updated: 2026-02-14
# Description: Config
# -----------------------------------------------------------------------------

from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv, find_dotenv

from settings import env_bool, env_float, env_int, env_optional_float, env_str

# Load .env once globally
load_dotenv(find_dotenv(usecwd=True), override=False)

CONTEXT_ORDERS = ("score", "document")


@dataclass(frozen=True)
class Config:
    # Index storage
    index_dir: str = "./data/index"
    segment_size: int = 256
    max_resident_segments: int = 8

    # Chunking
    chunk_max_size: int = 512
    chunk_overlap: int = 128
    chunk_boundary_tolerance: Optional[int] = None

    # Embeddings
    embedding_variant: str = "openai-small"
    embedding_fallback: bool = True
    embedding_cache_size: int = 1000
    embedding_batch_size: int = 32
    fallback_dimensions: int = 384

    # Search + context assembly
    default_k: int = 5
    min_score: Optional[float] = None
    token_budget: int = 512
    chars_per_token: int = 4
    dedup_overlap_ratio: float = 0.8
    context_order: str = "score"

    # Reranking (chat model rates rerank_fetch_factor * k candidates)
    rerank_enabled: bool = False
    rerank_fetch_factor: int = 2

    # Background compaction (0 disables the worker)
    compaction_interval_sec: float = 0.0
    compaction_min_tombstone_ratio: float = 0.2

    # OpenAI (embeddings backend + generation collaborator)
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_chat_model: str = "gpt-4o-mini"

    # ---- Single source of truth: field_name -> ENV VAR NAME ----
    ENV_VARS = {
        # Index
        "index_dir": "RAG_INDEX_DIR",
        "segment_size": "RAG_SEGMENT_SIZE",
        "max_resident_segments": "RAG_MAX_RESIDENT_SEGMENTS",

        # Chunking
        "chunk_max_size": "RAG_CHUNK_MAX_SIZE",
        "chunk_overlap": "RAG_CHUNK_OVERLAP",
        "chunk_boundary_tolerance": "RAG_CHUNK_BOUNDARY_TOLERANCE",

        # Embeddings
        "embedding_variant": "RAG_EMBEDDING_VARIANT",
        "embedding_fallback": "RAG_EMBEDDING_FALLBACK",
        "embedding_cache_size": "RAG_EMBEDDING_CACHE_SIZE",
        "embedding_batch_size": "RAG_EMBEDDING_BATCH_SIZE",
        "fallback_dimensions": "RAG_FALLBACK_DIMENSIONS",

        # Search + context
        "default_k": "RAG_DEFAULT_K",
        "min_score": "RAG_MIN_SCORE",
        "token_budget": "RAG_TOKEN_BUDGET",
        "chars_per_token": "RAG_CHARS_PER_TOKEN",
        "dedup_overlap_ratio": "RAG_DEDUP_OVERLAP_RATIO",
        "context_order": "RAG_CONTEXT_ORDER",

        # Reranking
        "rerank_enabled": "RAG_RERANK",
        "rerank_fetch_factor": "RAG_RERANK_FETCH_FACTOR",

        # Compaction
        "compaction_interval_sec": "RAG_COMPACTION_INTERVAL_SEC",
        "compaction_min_tombstone_ratio": "RAG_COMPACTION_MIN_TOMBSTONE_RATIO",

        # OpenAI
        "openai_api_key": "OPENAI_API_KEY",
        "openai_base_url": "OPENAI_BASE_URL",
        "openai_chat_model": "OPENAI_CHAT_MODEL",
    }

    @staticmethod
    def from_env() -> "Config":
        """Build Config object from environment variables, falling back to field defaults."""
        d = Config()
        env = Config.ENV_VARS
        tolerance = env_int(env["chunk_boundary_tolerance"], -1)
        return Config(
            index_dir=env_str(env["index_dir"], d.index_dir),
            segment_size=env_int(env["segment_size"], d.segment_size),
            max_resident_segments=env_int(env["max_resident_segments"], d.max_resident_segments),
            chunk_max_size=env_int(env["chunk_max_size"], d.chunk_max_size),
            chunk_overlap=env_int(env["chunk_overlap"], d.chunk_overlap),
            chunk_boundary_tolerance=None if tolerance < 0 else tolerance,
            embedding_variant=env_str(env["embedding_variant"], d.embedding_variant),
            embedding_fallback=env_bool(env["embedding_fallback"], d.embedding_fallback),
            embedding_cache_size=env_int(env["embedding_cache_size"], d.embedding_cache_size),
            embedding_batch_size=env_int(env["embedding_batch_size"], d.embedding_batch_size),
            fallback_dimensions=env_int(env["fallback_dimensions"], d.fallback_dimensions),
            default_k=env_int(env["default_k"], d.default_k),
            min_score=env_optional_float(env["min_score"], d.min_score),
            token_budget=env_int(env["token_budget"], d.token_budget),
            chars_per_token=env_int(env["chars_per_token"], d.chars_per_token),
            dedup_overlap_ratio=env_float(env["dedup_overlap_ratio"], d.dedup_overlap_ratio),
            context_order=env_str(env["context_order"], d.context_order).lower(),
            rerank_enabled=env_bool(env["rerank_enabled"], d.rerank_enabled),
            rerank_fetch_factor=env_int(env["rerank_fetch_factor"], d.rerank_fetch_factor),
            compaction_interval_sec=env_float(env["compaction_interval_sec"], d.compaction_interval_sec),
            compaction_min_tombstone_ratio=env_float(
                env["compaction_min_tombstone_ratio"], d.compaction_min_tombstone_ratio
            ),
            openai_api_key=env_str(env["openai_api_key"], d.openai_api_key),
            openai_base_url=env_str(env["openai_base_url"], d.openai_base_url),
            openai_chat_model=env_str(env["openai_chat_model"], d.openai_chat_model),
        )

    def __post_init__(self):
        """
        Fail fast on settings that would break the engine at runtime
        (e.g. an overlap that can never make progress).
        """
        problems = []
        if not self.index_dir:
            problems.append("index_dir must not be empty")
        if self.segment_size < 1:
            problems.append("segment_size must be >= 1")
        if self.max_resident_segments < 1:
            problems.append("max_resident_segments must be >= 1")
        if self.chunk_max_size < 1:
            problems.append("chunk_max_size must be >= 1")
        if not 0 <= self.chunk_overlap < self.chunk_max_size:
            problems.append("chunk_overlap must be >= 0 and < chunk_max_size")
        if self.chunk_boundary_tolerance is not None and self.chunk_boundary_tolerance < 0:
            problems.append("chunk_boundary_tolerance must be >= 0")
        if self.embedding_cache_size < 0:
            problems.append("embedding_cache_size must be >= 0")
        if self.embedding_batch_size < 1:
            problems.append("embedding_batch_size must be >= 1")
        if self.fallback_dimensions < 2:
            problems.append("fallback_dimensions must be >= 2")
        if self.default_k < 1:
            problems.append("default_k must be >= 1")
        if self.chars_per_token < 1:
            problems.append("chars_per_token must be >= 1")
        if not 0.0 < self.dedup_overlap_ratio <= 1.0:
            problems.append("dedup_overlap_ratio must be in (0, 1]")
        if self.context_order not in CONTEXT_ORDERS:
            problems.append(f"context_order must be one of {CONTEXT_ORDERS}")
        if self.rerank_fetch_factor < 1:
            problems.append("rerank_fetch_factor must be >= 1")
        if self.compaction_interval_sec < 0:
            problems.append("compaction_interval_sec must be >= 0")

        if problems:
            raise ValueError(f"Invalid configuration: {problems}")

    def summary(self) -> dict:
        """Return a safe, non-sensitive summary for logging."""
        return {
            "index_dir": self.index_dir,
            "segment_size": self.segment_size,
            "max_resident_segments": self.max_resident_segments,
            "chunk_max_size": self.chunk_max_size,
            "chunk_overlap": self.chunk_overlap,
            "embedding_variant": self.embedding_variant,
            "embedding_fallback": self.embedding_fallback,
            "default_k": self.default_k,
            "token_budget": self.token_budget,
            "context_order": self.context_order,
            "rerank_enabled": self.rerank_enabled,
            "openai_configured": bool(self.openai_api_key),
            "openai_chat_model": self.openai_chat_model,
        }
