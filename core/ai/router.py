"""
Completion Router

Picks the provider family for a model id and the credential for the request.

Credential precedence per family:
1. key supplied by the client
2. server-side fallback key from the configuration
3. none -> canned development-mode reply, the provider is never contacted

A placeholder key (whichever source it came from) also gets the canned reply.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, AsyncIterator, TYPE_CHECKING

from core.ai.base import (
    AIMessage, AIProviderConfig, ProviderAdapter, ProviderFamily, family_for_model
)
from core.ai.credentials import ClientKeys, CredentialKind, ProviderCredential, ServerCredentials
from core.ai.openai_provider import OpenAIProvider
from core.ai.anthropic_provider import AnthropicProvider
from core.ai.google_provider import GoogleProvider
from utils.logger import get_logger

if TYPE_CHECKING:
    from core.config import AppConfig

logger = get_logger('ai.router')

FALLBACK_FAMILY = ProviderFamily.OPENAI

MODEL_CATALOG: Dict[ProviderFamily, List[Dict[str, str]]] = {
    ProviderFamily.OPENAI: [
        {"id": "gpt-4o", "name": "GPT-4o"},
        {"id": "gpt-4o-mini", "name": "GPT-4o Mini"},
        {"id": "gpt-4-turbo", "name": "GPT-4 Turbo"},
        {"id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo"},
    ],
    ProviderFamily.ANTHROPIC: [
        {"id": "claude-3-5-sonnet-latest", "name": "Claude 3.5 Sonnet"},
        {"id": "claude-3-opus-20240229", "name": "Claude 3 Opus"},
        {"id": "claude-3-haiku-20240307", "name": "Claude 3 Haiku"},
    ],
    ProviderFamily.GOOGLE: [
        {"id": "gemini-1.5-pro", "name": "Gemini 1.5 Pro"},
        {"id": "gemini-1.5-flash", "name": "Gemini 1.5 Flash"},
        {"id": "gemini-2.0-flash", "name": "Gemini 2.0 Flash"},
    ],
}


def development_reply(
    family: ProviderFamily,
    kind: CredentialKind,
    messages: List[AIMessage]
) -> str:
    """Canned reply used when no real key is available"""
    user_messages = [m.content for m in messages if m.role == "user"]
    echoed = user_messages[-1] if user_messages else "No user message found"

    if kind == CredentialKind.PLACEHOLDER:
        return (
            "This is a development mode response using a placeholder API key. "
            f"No {family.display_name} model was called. Your message was: {echoed}"
        )
    return (
        "This is a development mode response. Please provide a valid "
        f"{family.display_name} API key in settings to use the actual API. "
        f"No model was called. Your message was: {echoed}"
    )


@dataclass
class RoutedCompletion:
    """A model, its family and the credential one request will use"""
    model: str
    family: ProviderFamily
    credential: ProviderCredential
    adapter: ProviderAdapter

    @property
    def development_mode(self) -> bool:
        return not self.credential.usable

    async def stream(self, messages: List[AIMessage]) -> AsyncIterator[str]:
        """Fragments from the provider, or the canned reply in development mode"""
        if self.development_mode:
            reply = development_reply(self.family, self.credential.kind, messages)
            for fragment in re.findall(r"\S+\s*", reply):
                yield fragment
            return

        fragments = self.adapter.stream(messages, self.model, self.credential.api_key)
        try:
            async for fragment in fragments:
                yield fragment
        finally:
            # Closing this generator must close the provider stream too
            await fragments.aclose()

    async def complete(self, messages: List[AIMessage]) -> str:
        if self.development_mode:
            return development_reply(self.family, self.credential.kind, messages)
        return await self.adapter.complete(messages, self.model, self.credential.api_key)


class CompletionRouter:
    """Model id -> adapter, plus per-request credential resolution"""

    def __init__(
        self,
        adapters: Dict[ProviderFamily, ProviderAdapter],
        server_credentials: Optional[ServerCredentials] = None,
        fallback_family: ProviderFamily = FALLBACK_FAMILY
    ):
        missing = [f.value for f in ProviderFamily if f not in adapters]
        if missing:
            raise ValueError(f"No adapter for families: {', '.join(missing)}")

        self.adapters = adapters
        self.server_credentials = server_credentials or ServerCredentials()
        self.fallback_family = fallback_family

        logger.info(f"CompletionRouter initialized (fallback={fallback_family.value})")

    @classmethod
    def from_config(cls, config: "AppConfig") -> "CompletionRouter":
        """Build the router with one adapter per family"""
        generation = config.generation

        def provider_config(family: ProviderFamily) -> AIProviderConfig:
            return AIProviderConfig(
                family=family,
                temperature=generation.temperature,
                max_tokens=generation.max_tokens[family],
                timeout=generation.timeout
            )

        adapters = {
            ProviderFamily.OPENAI: OpenAIProvider(provider_config(ProviderFamily.OPENAI)),
            ProviderFamily.ANTHROPIC: AnthropicProvider(provider_config(ProviderFamily.ANTHROPIC)),
            ProviderFamily.GOOGLE: GoogleProvider(provider_config(ProviderFamily.GOOGLE)),
        }
        return cls(adapters, config.server_credentials)

    def route(self, model: str) -> ProviderFamily:
        """Family for a model id; unknown ids fall back with a warning"""
        family = family_for_model(model)
        if family is None:
            logger.warning(f"Unknown model: {model}, defaulting to {self.fallback_family.value}")
            return self.fallback_family
        return family

    def resolve_credential(self, family: ProviderFamily, client_keys: ClientKeys) -> ProviderCredential:
        """Client key, then server key, then absent"""
        client = client_keys.get(family)
        if client.kind != CredentialKind.ABSENT:
            return client
        return self.server_credentials.get(family)

    def resolve(self, model: str, client_keys: Optional[ClientKeys] = None) -> RoutedCompletion:
        """Everything needed to run one completion request"""
        family = self.route(model)
        credential = self.resolve_credential(family, client_keys or ClientKeys())

        if credential.kind == CredentialKind.ABSENT:
            logger.warning(f"No {family.value} API key (client or server), using development mode")
        elif credential.kind == CredentialKind.PLACEHOLDER:
            logger.warning(f"Placeholder {family.value} key ({credential.source.value}), using development mode")
        else:
            logger.debug(f"Routing {model} -> {family.value} ({credential.source.value} key)")

        return RoutedCompletion(
            model=model,
            family=family,
            credential=credential,
            adapter=self.adapters[family]
        )

    def available_models(self, client_keys: Optional[ClientKeys] = None) -> List[Dict[str, str]]:
        """
        Models usable with the given keys.

        Families with a real key are listed. A placeholder key for any family
        marks a development environment, where every family is listed.
        """
        client_keys = client_keys or ClientKeys()
        kinds = {
            family: self.resolve_credential(family, client_keys).kind
            for family in ProviderFamily
        }
        development = any(kind == CredentialKind.PLACEHOLDER for kind in kinds.values())

        models = []
        for family in ProviderFamily:
            if kinds[family] == CredentialKind.REAL or development:
                for entry in MODEL_CATALOG[family]:
                    models.append({**entry, "provider": family.value})
        return models
