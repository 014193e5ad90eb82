# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-20
# Updated: 2026-02-14
# Description: retrieve router
# -----------------------------------------------------------------------------
from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_retrieval_service
from api.schemas.retrieve import RetrieveHit, RetrieveRequest, RetrieveResponse
from services.RetrievalService import RetrievalService
from utility.logging_utils import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/retrieve", tags=["retrieve"])


@router.post("", response_model=RetrieveResponse)
def post_retrieve(
    req: RetrieveRequest,
    svc: RetrievalService = Depends(get_retrieval_service),
) -> RetrieveResponse:
    query_text = (req.query or "").strip()
    if not query_text:
        raise HTTPException(status_code=400, detail="query must not be empty")

    try:
        out = svc.retrieve(
            query_text,
            k=req.k,
            category=req.category,
            min_score=req.min_score,
            token_budget=req.token_budget,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Retrieve failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Retrieve failed: {e}")

    return RetrieveResponse(
        query=out.query,
        model_version=out.model_version,
        context=out.context_text,
        used_record_ids=out.used_record_ids,
        results=[RetrieveHit(**r.to_dict()) for r in out.results],
        partial=out.partial,
        estimated_tokens=out.estimated_tokens,
        truncated=out.truncated,
    )
