# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-22
# Updated: 2026-02-14
# Description: documents.py
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class IngestDocumentRequest(BaseModel):
    doc_id: str = Field(..., min_length=1)
    text: str
    category: Optional[str] = None


class IngestDocumentResponse(BaseModel):
    doc_id: str
    chunks: int
    model_version: str
    replaced_records: int = 0


class IngestBatchRequest(BaseModel):
    documents: List[IngestDocumentRequest] = Field(..., min_length=1)


class IngestBatchResponse(BaseModel):
    requested: int
    ingested: List[IngestDocumentResponse]
    failed: Dict[str, str] = Field(default_factory=dict)
    cancelled: bool = False


class DocumentInfo(BaseModel):
    doc_id: str
    chunk_count: int


class ListDocumentsResponse(BaseModel):
    model_version: str
    count: int
    documents: List[DocumentInfo]


class DeleteVectorsResponse(BaseModel):
    doc_id: str
    deleted: int


class CompactRequest(BaseModel):
    min_tombstone_ratio: float = Field(0.0, ge=0.0, le=1.0)


class CompactResponse(BaseModel):
    rewritten_segments: int
