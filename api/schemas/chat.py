# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-28
# Updated: 2026-02-14
# Description: api/schemas/chat.py
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from api.schemas.retrieve import RetrieveHit
from settings import CHAT_DEFAULTS, MAX_K, RETRIEVE_DEFAULTS


class ChatRequest(BaseModel):
    question: str = Field(..., min_length=1)

    # Retrieval controls (mirror /retrieve)
    k: int = Field(RETRIEVE_DEFAULTS["k"], ge=1, le=MAX_K)
    category: Optional[str] = None
    min_score: Optional[float] = Field(None, ge=-1.0, le=1.0)
    token_budget: Optional[int] = Field(None, ge=0)
    rerank: Optional[bool] = None  # None -> server default (RAG_RERANK)

    # Prompt / model controls
    temperature: float = Field(CHAT_DEFAULTS["temperature"], ge=0.0, le=2.0)
    max_tokens: int = Field(CHAT_DEFAULTS["max_tokens"], ge=1, le=4096)

    # Prior turns, oldest first
    history: Optional[List[Dict[str, str]]] = None


class ChatResponse(BaseModel):
    question: str
    answer: str
    grounded: bool
    sources: List[RetrieveHit] = Field(default_factory=list)
    model_version: Optional[str] = None
    partial: bool = False
    reranked: bool = False

    # helpful for debugging / telemetry
    model: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
