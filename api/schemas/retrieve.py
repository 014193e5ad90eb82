# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-20
# Updated: 2026-02-14
# Description: retrieve.py
# -----------------------------------------------------------------------------
from typing import List, Optional

from pydantic import BaseModel, Field

from settings import MAX_K, RETRIEVE_DEFAULTS


class RetrieveRequest(BaseModel):
    query: str = Field(..., min_length=1)
    k: int = Field(RETRIEVE_DEFAULTS["k"], ge=1, le=MAX_K)
    category: Optional[str] = None
    min_score: Optional[float] = Field(None, ge=-1.0, le=1.0)
    token_budget: int = Field(RETRIEVE_DEFAULTS["token_budget"], ge=0)


class RetrieveHit(BaseModel):
    record_id: str
    score: float
    text: str
    source_document_id: str
    chunk_index: int
    category: Optional[str] = None
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None


class RetrieveResponse(BaseModel):
    query: str
    model_version: str
    context: str
    used_record_ids: List[str]
    results: List[RetrieveHit]
    partial: bool = False
    estimated_tokens: int = 0
    truncated: bool = False
