"""
Retrieval Routes - Document Processing & Search
"""

from fastapi import APIRouter, HTTPException

from api.models import (
    SearchRequest, SearchResponse, ContextRequest, ContextResponse,
    ContextItem, ProcessResponse
)
from api.dependencies import get_indexer, get_retriever, http_error
from core.errors import AssistantError
from utils.logger import get_logger

logger = get_logger('api.routes.retrieval')

router = APIRouter(prefix="/api/retrieval", tags=["retrieval"])


@router.post("/process/{document_id}", response_model=ProcessResponse)
async def process_document(document_id: str):
    """Extract, chunk, embed and store a registered document"""
    indexer = get_indexer()

    try:
        stats = await indexer.process_document(document_id)
    except AssistantError as e:
        logger.warning(f"Processing {document_id} failed ({e.status_code}): {e}")
        raise http_error(e) from e
    except Exception as e:
        logger.error(f"Processing {document_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="failed to process document") from e

    return ProcessResponse(
        success=True,
        document_id=stats.document_id,
        chunks=stats.chunks,
        passages=stats.passages
    )


@router.post("/search", response_model=SearchResponse)
async def search(request: SearchRequest):
    """Passages most similar to the query"""
    retriever = get_retriever()

    try:
        results = await retriever.retrieve(
            request.query,
            document_ids=request.document_ids,
            max_results=request.max_results,
            threshold=request.similarity_threshold
        )
    except AssistantError as e:
        logger.warning(f"Search failed ({e.status_code}): {e}")
        raise http_error(e) from e

    return SearchResponse(
        context_items=[ContextItem(**r.to_dict()) for r in results],
        total_results=len(results)
    )


@router.post("/context-for-prompt", response_model=ContextResponse)
async def context_for_prompt(request: ContextRequest):
    """Retrieved passages formatted as a prompt context block"""
    retriever = get_retriever()

    try:
        result = await retriever.context_for_prompt(
            request.query,
            document_ids=request.document_ids,
            max_results=request.max_results,
            threshold=request.similarity_threshold,
            max_length=request.max_length
        )
    except AssistantError as e:
        logger.warning(f"Context lookup failed ({e.status_code}): {e}")
        raise http_error(e) from e

    return ContextResponse(**result)
