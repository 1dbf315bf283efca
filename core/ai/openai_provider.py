"""
OpenAI Provider Implementation (Family A)

System instructions stay inline as a role:"system" entry in a flat message
list. The SDK's async stream is the transport.

Reasoning models (o1, o3, o4 ...) take the system entry as role:"developer",
reject temperature and cap output with max_completion_tokens.
"""

from typing import List, Dict, Any, AsyncIterator, Callable, Optional

import openai
from openai import AsyncOpenAI

from core.ai.base import AIMessage, AIProviderConfig, ProviderAdapter, ProviderFamily
from core.errors import CredentialError, RateLimitError, ProviderError
from utils.logger import get_logger

logger = get_logger('ai.openai')

REASONING_PREFIXES = ("o1", "o3", "o4")


def is_reasoning_model(model: str) -> bool:
    return model.startswith(REASONING_PREFIXES)


def translate_openai_error(error: Exception) -> Exception:
    """Map an OpenAI SDK exception onto the error taxonomy"""
    if isinstance(error, openai.AuthenticationError):
        return CredentialError(f"OpenAI rejected the API key: {error}")
    if isinstance(error, openai.PermissionDeniedError):
        return CredentialError(f"OpenAI denied access for this key: {error}")
    if isinstance(error, openai.RateLimitError):
        return RateLimitError(f"OpenAI rate limit: {error}")
    return ProviderError(f"OpenAI request failed: {error}")


class OpenAIProvider(ProviderAdapter):
    """OpenAI chat completions (GPT-4o, GPT-4o-mini, ...)"""

    family = ProviderFamily.OPENAI

    def __init__(
        self,
        config: AIProviderConfig,
        client_factory: Optional[Callable[[str], Any]] = None
    ):
        super().__init__(config)
        # One client per request: keys are never cached across requests
        self._client_factory = client_factory or self._default_client

    def _default_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout
        )

    def translate(self, messages: List[AIMessage], system_role: str = "system") -> Dict[str, Any]:
        """Convert to OpenAI format"""
        return {
            "messages": [
                {"role": system_role if msg.role == "system" else msg.role, "content": msg.content}
                for msg in messages
            ]
        }

    def request_params(self, messages: List[AIMessage], model: str) -> Dict[str, Any]:
        """Keyword arguments for chat.completions.create"""
        if is_reasoning_model(model):
            params = {
                "model": model,
                "max_completion_tokens": self.config.max_tokens,
                **self.translate(messages, system_role="developer")
            }
        else:
            params = {
                "model": model,
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
                **self.translate(messages)
            }
        params.update(self.config.extra_params)
        params["stream"] = True
        return params

    async def stream(
        self,
        messages: List[AIMessage],
        model: str,
        api_key: str
    ) -> AsyncIterator[str]:
        """Stream chat response"""
        client = self._client_factory(api_key)
        try:
            stream = await client.chat.completions.create(**self.request_params(messages, model))

            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except openai.OpenAIError as e:
            logger.error(f"OpenAI stream error ({model}): {e}")
            raise translate_openai_error(e) from e
        finally:
            await client.close()
