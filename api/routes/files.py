"""
File Routes - Document Registry
"""

import asyncio

from fastapi import APIRouter, HTTPException

from api.models import FileRegisterRequest, FileResponse, FileDeleteResponse
from api.dependencies import get_indexer, get_store, http_error
from core.errors import AssistantError
from modules.rag.base import DocumentRecord
from utils.logger import get_logger

logger = get_logger('api.routes.files')

router = APIRouter(prefix="/api/files", tags=["files"])


def to_file_response(record: DocumentRecord, passages=None) -> FileResponse:
    return FileResponse(
        id=record.id,
        user_id=record.user_id,
        name=record.name,
        file_path=record.file_path,
        mime_type=record.mime_type,
        description=record.description,
        created_at=record.created_at.isoformat() if record.created_at else None,
        passages=passages
    )


@router.post("", response_model=FileResponse)
async def register_file(request: FileRegisterRequest):
    """
    Register an uploaded file (optionally processing it right away).

    The file must already be on disk at `file_path`.
    """
    store = get_store()

    record = await asyncio.to_thread(
        store.register_document,
        request.user_id,
        request.name,
        request.file_path,
        request.mime_type,
        request.description
    )

    if not request.process:
        return to_file_response(record)

    try:
        stats = await get_indexer().process_document(record.id)
    except AssistantError as e:
        logger.warning(f"Registered {record.id} but processing failed: {e}")
        raise http_error(e) from e
    except Exception as e:
        logger.error(f"Processing {record.id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="failed to process document") from e

    return to_file_response(record, passages=stats.passages)


@router.delete("/{document_id}", response_model=FileDeleteResponse)
async def delete_file(document_id: str):
    """Delete a document and all of its passages"""
    indexer = get_indexer()

    try:
        removed = await indexer.delete_document(document_id)
    except AssistantError as e:
        raise http_error(e) from e

    return FileDeleteResponse(success=True, document_id=document_id, passages_removed=removed)
