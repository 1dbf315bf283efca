"""
Chat Routes - Completion Endpoints
"""

from fastapi import APIRouter, HTTPException, Request

from api.models import ChatRequest, ChatResponse
from api.dependencies import (
    get_app_config,
    get_completion_service,
    http_error
)
from core.ai.credentials import ClientKeys
from core.config import AppConfig
from core.errors import AssistantError
from core.services.completion_service import CompletionRequest
from utils.logger import get_logger

logger = get_logger('api.routes.chat')

router = APIRouter(prefix="/api", tags=["chat"])


def to_completion_request(request: ChatRequest, config: AppConfig) -> CompletionRequest:
    """Parse the request body; client keys are classified here, once"""
    return CompletionRequest(
        messages=[m.to_ai_message() for m in request.history],
        model=request.model or config.default_model,
        client_keys=ClientKeys.from_raw(request.as_family_map(), config.placeholder_policy),
        context=request.context,
        document_ids=request.document_ids,
        chat_id=request.chat_id,
        user_id=request.user_id
    )


# ============================================
# ROUTES
# ============================================

@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """
    Non-streaming chat completion.

    Example:
    ```json
    POST /api/chat
    {
        "history": [{"role": "user", "content": "Hello"}],
        "model": "gpt-4o-mini",
        "api_key": "sk-..."
    }
    ```
    """
    service = get_completion_service()
    completion = to_completion_request(request, get_app_config())

    logger.info(f"Chat request for model: {completion.model}")

    try:
        result = await service.complete(completion)
    except AssistantError as e:
        logger.warning(f"Chat failed ({e.status_code}): {e}")
        raise http_error(e) from e
    except Exception as e:
        logger.error(f"Chat error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="an internal error occurred") from e

    return ChatResponse(**result)


@router.post("/chat/stream")
async def chat_stream(request: ChatRequest, http_request: Request):
    """
    Stream chat response (Server-Sent Events)

    One `data:` event per text fragment (JSON string), then `data: [DONE]`.
    A failure after streaming started arrives as `data: {"error": "..."}`.
    """
    service = get_completion_service()
    completion = to_completion_request(request, get_app_config())

    logger.info(f"Streaming request received for model: {completion.model}")

    try:
        relay = await service.stream(completion, is_disconnected=http_request.is_disconnected)
    except AssistantError as e:
        logger.warning(f"Stream failed before start ({e.status_code}): {e}")
        raise http_error(e) from e
    except Exception as e:
        logger.error(f"Stream error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="an internal error occurred") from e

    return relay.response()
