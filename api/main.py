"""
FastAPI Main Application

Organized with separate route modules for maintainability.

Run with: uvicorn api.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import dependencies
from api.models import HealthResponse
from api.routes import chat, models, retrieval, files
from core.config import load_app_config
from core.services.factory import build_services
from utils.logger import get_logger

logger = get_logger('api.main')


# ============================================
# STARTUP & SHUTDOWN
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize services on startup, release them on shutdown"""
    logger.info("Starting API service...")
    load_dotenv()

    try:
        config = load_app_config()
        services = build_services(config)
    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise

    dependencies.app_config = config
    dependencies.store = services.store
    dependencies.retriever = services.retriever
    dependencies.indexer = services.indexer
    dependencies.completion_service = services.completion
    logger.info("API service ready")

    yield

    logger.info("Shutting down API service...")
    await services.close()
    dependencies.completion_service = None
    dependencies.retriever = None
    dependencies.indexer = None
    dependencies.store = None


# ============================================
# FASTAPI APP SETUP
# ============================================

app = FastAPI(
    title="RAG Chat API",
    description="Multi-provider streaming chat with document retrieval",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400)"""
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())}
    )


# ============================================
# REGISTER ROUTES
# ============================================

app.include_router(chat.router)
app.include_router(models.router)
app.include_router(retrieval.router)
app.include_router(files.router)


# ============================================
# ROOT ENDPOINTS
# ============================================

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "RAG Chat API",
        "status": "ready" if dependencies.completion_service else "starting",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "chat": "/api/chat",
            "stream": "/api/chat/stream",
            "models": "/api/models",
            "search": "/api/retrieval/search",
            "context": "/api/retrieval/context-for-prompt",
            "process": "/api/retrieval/process/{document_id}",
            "files": "/api/files"
        }
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check"""
    config = dependencies.app_config
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        service_ready=dependencies.completion_service is not None,
        retrieval_ready=dependencies.retriever is not None,
        passage_backend=config.storage.passage_backend if config else None
    )


# ============================================
# MAIN
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
