"""
AI Provider System

Provider adapters (OpenAI, Anthropic, Google), credentials and routing.
"""

from core.ai.base import (
    AIMessage,
    AIProviderConfig,
    ProviderAdapter,
    ProviderFamily,
    family_for_model,
    validate_conversation,
    inject_context
)
from core.ai.credentials import (
    ClientKeys,
    CredentialKind,
    CredentialSource,
    PlaceholderPolicy,
    ProviderCredential,
    ServerCredentials
)
from core.ai.openai_provider import OpenAIProvider
from core.ai.anthropic_provider import AnthropicProvider
from core.ai.google_provider import GoogleProvider
from core.ai.router import CompletionRouter, RoutedCompletion, development_reply

__all__ = [
    'AIMessage',
    'AIProviderConfig',
    'ProviderAdapter',
    'ProviderFamily',
    'family_for_model',
    'validate_conversation',
    'inject_context',
    'ClientKeys',
    'CredentialKind',
    'CredentialSource',
    'PlaceholderPolicy',
    'ProviderCredential',
    'ServerCredentials',
    'OpenAIProvider',
    'AnthropicProvider',
    'GoogleProvider',
    'CompletionRouter',
    'RoutedCompletion',
    'development_reply'
]
