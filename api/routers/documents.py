# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2025-12-23
# Updated: 2026-02-14
# Description: documents.py
# -----------------------------------------------------------------------------
from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_retrieval_service
from api.schemas.documents import (
    CompactRequest,
    CompactResponse,
    DeleteVectorsResponse,
    DocumentInfo,
    IngestBatchRequest,
    IngestBatchResponse,
    IngestDocumentRequest,
    IngestDocumentResponse,
    ListDocumentsResponse,
)
from services.RetrievalService import IngestDocument, IngestResult, RetrievalService
from utility.logging_utils import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def _to_response(r: IngestResult) -> IngestDocumentResponse:
    return IngestDocumentResponse(
        doc_id=r.source_document_id,
        chunks=r.chunks,
        model_version=r.model_version,
        replaced_records=r.replaced_records,
    )


@router.get("", response_model=ListDocumentsResponse)
def get_documents(
        svc: RetrievalService = Depends(get_retrieval_service),
) -> ListDocumentsResponse:
    logger.info("GET /documents (start)")
    try:
        counts = svc.list_documents()
        docs = [DocumentInfo(doc_id=d, chunk_count=n) for d, n in counts.items()]
        resp = ListDocumentsResponse(model_version=svc.model_version, count=len(docs), documents=docs)
        logger.info("GET /documents (done) count=%d", resp.count)
        return resp
    except Exception as e:
        logger.exception("GET /documents -> 500: %s", e)
        raise HTTPException(status_code=500, detail=f"get_documents failed: {e}")


@router.post("/ingest", response_model=IngestDocumentResponse)
def post_ingest_document(
        req: IngestDocumentRequest,
        svc: RetrievalService = Depends(get_retrieval_service),
) -> IngestDocumentResponse:
    doc_id = (req.doc_id or "").strip()
    logger.info("POST /documents/ingest (start) doc_id='%s' chars=%d", doc_id, len(req.text))

    if not doc_id:
        logger.warning("POST /documents/ingest -> 400 (doc_id empty)")
        raise HTTPException(status_code=400, detail="doc_id must not be empty")

    try:
        result = svc.ingest(doc_id, req.text, category=req.category)
        logger.info("POST /documents/ingest (done) doc_id='%s' chunks=%d", doc_id, result.chunks)
        return _to_response(result)
    except ValueError as e:
        logger.warning("POST /documents/ingest -> 400 doc_id='%s': %s", doc_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("POST /documents/ingest -> 500 doc_id='%s': %s", doc_id, e)
        raise HTTPException(status_code=500, detail=f"ingest failed: {e}")


@router.post("/ingest/batch", response_model=IngestBatchResponse)
def post_ingest_batch(
        req: IngestBatchRequest,
        svc: RetrievalService = Depends(get_retrieval_service),
) -> IngestBatchResponse:
    logger.info("POST /documents/ingest/batch (start) requested=%d", len(req.documents))
    try:
        report = svc.ingest_batch(
            IngestDocument(d.doc_id, d.text, d.category) for d in req.documents
        )
        resp = IngestBatchResponse(
            requested=len(req.documents),
            ingested=[_to_response(r) for r in report.ingested],
            failed=report.failed,
            cancelled=report.cancelled,
        )
        logger.info(
            "POST /documents/ingest/batch (done) ingested=%d failed=%d",
            len(resp.ingested),
            len(resp.failed),
        )
        return resp
    except Exception as e:
        logger.exception("POST /documents/ingest/batch -> 500: %s", e)
        raise HTTPException(status_code=500, detail=f"batch ingest failed: {e}")


@router.delete("/{doc_id}/vectors", response_model=DeleteVectorsResponse)
def delete_document_vectors(
        doc_id: str,
        svc: RetrievalService = Depends(get_retrieval_service),
) -> DeleteVectorsResponse:
    doc_id = (doc_id or "").strip()
    logger.info("DELETE /documents/{doc_id}/vectors (start) doc_id='%s'", doc_id)

    if not doc_id:
        logger.warning("DELETE /documents/{doc_id}/vectors -> 400 (doc_id empty)")
        raise HTTPException(status_code=400, detail="doc_id must not be empty")

    try:
        deleted = svc.delete_document(doc_id)
    except Exception as e:
        logger.exception("DELETE /documents/{doc_id}/vectors -> 500 doc_id='%s': %s", doc_id, e)
        raise HTTPException(status_code=500, detail=f"delete vectors failed: {e}")

    if deleted == 0:
        logger.info("DELETE /documents/{doc_id}/vectors -> 404 doc_id='%s'", doc_id)
        raise HTTPException(status_code=404, detail=f"no vectors for document '{doc_id}'")

    logger.info("DELETE /documents/{doc_id}/vectors (done) doc_id='%s' deleted=%d", doc_id, deleted)
    return DeleteVectorsResponse(doc_id=doc_id, deleted=deleted)


@router.post("/compact", response_model=CompactResponse)
def post_compact(
        req: CompactRequest,
        svc: RetrievalService = Depends(get_retrieval_service),
) -> CompactResponse:
    logger.info("POST /documents/compact (start) min_tombstone_ratio=%.2f", req.min_tombstone_ratio)
    try:
        rewritten = svc.compact(min_tombstone_ratio=req.min_tombstone_ratio)
        logger.info("POST /documents/compact (done) rewritten=%d", rewritten)
        return CompactResponse(rewritten_segments=rewritten)
    except Exception as e:
        logger.exception("POST /documents/compact -> 500: %s", e)
        raise HTTPException(status_code=500, detail=f"compact failed: {e}")
