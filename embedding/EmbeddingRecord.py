# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-11-14
# Updated: 2026-02-03
# Description: EmbeddingRecord
# -----------------------------------------------------------------------------
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np


def make_record_id(source_document_id: str, chunk_index: int) -> str:
    return f"{source_document_id}_{chunk_index}"


@dataclass(frozen=True, eq=False)
class EmbeddingRecord:
    """Embedding vector + original passage text + provenance. Immutable once created."""
    id: str
    source_document_id: str
    chunk_index: int
    text: str
    vector: np.ndarray
    model_version: str
    category: Optional[str] = None
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None
    created_at: float = field(default_factory=time.time)

    @property
    def dimensions(self) -> int:
        return int(self.vector.shape[-1])

    def to_metadata(self) -> Dict[str, Any]:
        """Everything except the vector, JSON-serialisable."""
        return {
            "id": self.id,
            "source_document_id": self.source_document_id,
            "chunk_index": self.chunk_index,
            "text": self.text,
            "model_version": self.model_version,
            "category": self.category,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "created_at": self.created_at,
        }

    @classmethod
    def from_metadata(cls, meta: Dict[str, Any], vector: np.ndarray) -> "EmbeddingRecord":
        return cls(
            id=str(meta["id"]),
            source_document_id=str(meta["source_document_id"]),
            chunk_index=int(meta["chunk_index"]),
            text=str(meta["text"]),
            vector=vector,
            model_version=str(meta["model_version"]),
            category=meta.get("category"),
            start_offset=meta.get("start_offset"),
            end_offset=meta.get("end_offset"),
            created_at=float(meta.get("created_at", 0.0)),
        )
