"""
API Dependencies - Shared Resources

Provides dependency injection for FastAPI routes.
Set once by the application lifespan (or directly by tests).
"""

from typing import Optional
from fastapi import HTTPException

from core.config import AppConfig
from core.errors import AssistantError
from core.services.completion_service import CompletionService
from modules.rag.indexer import DocumentIndexer
from modules.rag.retriever import Retriever
from modules.storage.sqlite_store import SQLiteStore
from utils.logger import get_logger

logger = get_logger('api.dependencies')

# ============================================
# GLOBAL STATE
# ============================================

app_config: Optional[AppConfig] = None
completion_service: Optional[CompletionService] = None
retriever: Optional[Retriever] = None
indexer: Optional[DocumentIndexer] = None
store: Optional[SQLiteStore] = None


# ============================================
# DEPENDENCY FUNCTIONS
# ============================================

def get_app_config() -> AppConfig:
    if app_config is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return app_config


def get_completion_service() -> CompletionService:
    """
    Get completion service.

    Raises:
        HTTPException: If service not ready
    """
    if completion_service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return completion_service


def get_retriever() -> Retriever:
    if retriever is None:
        raise HTTPException(status_code=503, detail="Retrieval not available")
    return retriever


def get_indexer() -> DocumentIndexer:
    if indexer is None:
        raise HTTPException(status_code=503, detail="Document processing not available")
    return indexer


def get_store() -> SQLiteStore:
    if store is None:
        raise HTTPException(status_code=503, detail="Document registry not available")
    return store


def http_error(error: AssistantError) -> HTTPException:
    """Client-facing HTTP error for a domain error (public message only)"""
    return HTTPException(status_code=error.status_code, detail=error.public_message)
