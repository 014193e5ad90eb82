# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-28
# Updated: 2026-02-14
# Description: chat.py
# -----------------------------------------------------------------------------
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_chat_service
from api.schemas.chat import ChatRequest, ChatResponse
from api.schemas.retrieve import RetrieveHit
from services.TutorChatService import TutorChatService
from utility.logging_utils import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
def post_chat(
        req: ChatRequest,
        svc: TutorChatService = Depends(get_chat_service),
) -> ChatResponse:
    question = (req.question or "").strip()
    if not question:
        raise HTTPException(status_code=400, detail="question must not be empty")

    logger.info("POST /chat (start) question_len=%d k=%d", len(question), req.k)

    try:
        out: Dict[str, Any] = svc.chat(
            user_query=question,
            k=req.k,
            category=req.category,
            min_score=req.min_score,
            token_budget=req.token_budget,
            conversation=req.history,
            temperature=req.temperature,
            max_tokens=req.max_tokens,
            rerank=req.rerank,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("post_chat failed: %s", e)
        raise HTTPException(status_code=500, detail=f"chat failed: {e}")

    sources = [RetrieveHit(**s) for s in out.get("sources", [])]
    logger.info("POST /chat (done) answer_len=%d sources=%d", len(out.get("answer", "") or ""), len(sources))

    return ChatResponse(
        question=out["question"],
        answer=out["answer"],
        grounded=out["grounded"],
        sources=sources,
        model_version=out["retrieval"]["model_version"],
        partial=out["retrieval"]["partial"],
        reranked=out["retrieval"]["reranked"],
        model=out.get("model"),
        usage=out.get("usage"),
    )
