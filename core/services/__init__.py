"""
Core Services Module

Business logic layer between the HTTP routes and the providers/RAG modules.
"""

from core.services.completion_service import CompletionService, CompletionRequest
from core.services.stream_relay import StreamRelay, StreamSession, StreamState

__all__ = [
    'CompletionService',
    'CompletionRequest',
    'StreamRelay',
    'StreamSession',
    'StreamState'
]
