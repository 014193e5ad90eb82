# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-07
# Updated: 2026-02-14
# Description: health.py
# -----------------------------------------------------------------------------
from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_health_service
from api.schemas.health import DeepHealthResponse, HealthResponse
from services.HealthService import HealthService
from utility.logging_utils import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok", message="Offline RAG retrieval API running")


@router.get("/deep", response_model=DeepHealthResponse)
def deep_health_check(
    svc: HealthService = Depends(get_health_service),
    include_chat: bool = Query(False, description="Also ping the chat model"),
) -> DeepHealthResponse:
    logger.info("GET /health/deep called (include_chat=%s)", include_chat)
    try:
        result = svc.deep_health(include_chat=include_chat)
        logger.info("GET /health/deep completed (status=%s)", result["status"])
        return DeepHealthResponse(**result)
    except Exception as e:
        logger.exception("GET /health/deep failed: %s", e)
        raise HTTPException(status_code=500, detail=f"deep health failed: {e}")
