"""
Anthropic Provider Implementation (Family B)

The system message travels in its own top-level field; the remaining turns
become role-tagged lists of content blocks. Transport is the SDK's message
event stream.
"""

from typing import List, Dict, Any, AsyncIterator, Callable, Optional

import anthropic
from anthropic import AsyncAnthropic

from core.ai.base import (
    AIMessage, AIProviderConfig, ProviderAdapter, ProviderFamily, split_system
)
from core.errors import CredentialError, RateLimitError, ProviderError
from utils.logger import get_logger

logger = get_logger('ai.anthropic')


def translate_anthropic_error(error: Exception) -> Exception:
    """Map an Anthropic SDK exception onto the error taxonomy"""
    if isinstance(error, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return CredentialError(f"Anthropic rejected the API key: {error}")
    if isinstance(error, anthropic.RateLimitError):
        return RateLimitError(f"Anthropic rate limit: {error}")
    return ProviderError(f"Anthropic request failed: {error}")


class AnthropicProvider(ProviderAdapter):
    """Anthropic Messages API (Claude models)"""

    family = ProviderFamily.ANTHROPIC

    def __init__(
        self,
        config: AIProviderConfig,
        client_factory: Optional[Callable[[str], Any]] = None
    ):
        super().__init__(config)
        self._client_factory = client_factory or self._default_client

    def _default_client(self, api_key: str) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout
        )

    def translate(self, messages: List[AIMessage]) -> Dict[str, Any]:
        """Extract system, convert turns to content blocks"""
        system, turns = split_system(messages)

        payload: Dict[str, Any] = {
            "messages": [
                {
                    "role": msg.role,
                    "content": [{"type": "text", "text": msg.content}]
                }
                for msg in turns
            ]
        }
        if system:
            payload["system"] = system
        return payload

    async def stream(
        self,
        messages: List[AIMessage],
        model: str,
        api_key: str
    ) -> AsyncIterator[str]:
        """Stream chat response"""
        client = self._client_factory(api_key)
        try:
            async with client.messages.stream(
                model=model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                **self.translate(messages),
                **self.config.extra_params
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.AnthropicError as e:
            logger.error(f"Anthropic stream error ({model}): {e}")
            raise translate_anthropic_error(e) from e
        finally:
            await client.close()
