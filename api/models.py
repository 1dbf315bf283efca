"""
API Models - Request/Response Schemas

All Pydantic models for API validation.
"""

from typing import Optional, Dict, List
from pydantic import BaseModel, Field

from core.ai.base import AIMessage


# ============================================
# CHAT MODELS
# ============================================

class ChatMessage(BaseModel):
    role: str  # system, user, assistant
    content: str
    model: Optional[str] = None

    def to_ai_message(self) -> AIMessage:
        return AIMessage(role=self.role, content=self.content, model=self.model)


class ProviderKeys(BaseModel):
    """API keys supplied by the client, one per provider family"""
    api_key: Optional[str] = None            # OpenAI
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    def as_family_map(self) -> Dict[str, Optional[str]]:
        return {
            "openai": self.api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }


class ChatRequest(ProviderKeys):
    history: List[ChatMessage]
    model: Optional[str] = None
    chat_id: Optional[str] = None
    user_id: Optional[str] = None
    context: Optional[str] = None
    document_ids: List[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
    response: str
    model: str
    provider: str
    development_mode: bool


class ModelsRequest(ProviderKeys):
    pass


class ModelInfo(BaseModel):
    id: str
    name: str
    provider: str


class ModelsResponse(BaseModel):
    models: List[ModelInfo]


# ============================================
# RETRIEVAL MODELS
# ============================================

class SearchRequest(BaseModel):
    query: str
    document_ids: Optional[List[str]] = None
    max_results: int = Field(default=5, ge=1, le=50)
    similarity_threshold: float = Field(default=0.75, ge=0.0, le=1.0)


class ContextRequest(SearchRequest):
    max_length: int = Field(default=5000, ge=1)


class ContextItem(BaseModel):
    content: str
    document_id: str
    document_name: str
    similarity: float


class SearchResponse(BaseModel):
    context_items: List[ContextItem]
    total_results: int


class ContextResponse(BaseModel):
    context: str
    total_results: int


class ProcessResponse(BaseModel):
    success: bool
    document_id: str
    chunks: int
    passages: int


# ============================================
# FILE MODELS
# ============================================

class FileRegisterRequest(BaseModel):
    user_id: str
    name: str
    file_path: str
    mime_type: str = "text/plain"
    description: Optional[str] = None
    process: bool = False


class FileResponse(BaseModel):
    id: str
    user_id: str
    name: str
    file_path: str
    mime_type: str
    description: Optional[str] = None
    created_at: Optional[str] = None
    passages: Optional[int] = None


class FileDeleteResponse(BaseModel):
    success: bool
    document_id: str
    passages_removed: int


# ============================================
# SYSTEM MODELS
# ============================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service_ready: bool
    retrieval_ready: bool
    passage_backend: Optional[str] = None
