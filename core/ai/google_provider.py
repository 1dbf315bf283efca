"""
Google Gemini Provider Implementation (Family C)

Gemini has no system role: the system text is merged as a prefix into the
first user turn, and consecutive turns from the same side are coalesced into
one entry with several parts. Transport is server-sent events over a chunked
HTTP response, read line by line.
"""

import json
from typing import List, Dict, Any, AsyncIterator, Optional

import httpx

from core.ai.base import (
    AIMessage, AIProviderConfig, ProviderAdapter, ProviderFamily, split_system
)
from core.errors import CredentialError, RateLimitError, ProviderError
from utils.logger import get_logger

logger = get_logger('ai.google')

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


def translate_google_status(status_code: int, body: str) -> Exception:
    """Map an HTTP error from the Gemini API onto the error taxonomy"""
    if status_code in (401, 403) or "API_KEY_INVALID" in body or "API key not valid" in body:
        return CredentialError(f"Google rejected the API key (HTTP {status_code})")
    if status_code == 429:
        return RateLimitError("Google rate limit (HTTP 429)")
    return ProviderError(f"Google request failed (HTTP {status_code})")


def extract_text(event: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate"""
    candidates = event.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GoogleProvider(ProviderAdapter):
    """Gemini streamGenerateContent over plain HTTP"""

    family = ProviderFamily.GOOGLE

    def __init__(
        self,
        config: AIProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(config)
        self.base_url = config.base_url or DEFAULT_BASE_URL
        self._transport = transport

    def translate(self, messages: List[AIMessage]) -> Dict[str, Any]:
        """Coalesce turns into Gemini contents, system text folded into the first user turn"""
        system, turns = split_system(messages)

        contents: List[Dict[str, Any]] = []
        for msg in turns:
            role = "user" if msg.role == "user" else "model"
            if contents and contents[-1]["role"] == role:
                contents[-1]["parts"].append({"text": msg.content})
            else:
                contents.append({"role": role, "parts": [{"text": msg.content}]})

        if system:
            if contents and contents[0]["role"] == "user":
                first = contents[0]["parts"][0]
                first["text"] = f"{system}\n\n{first['text']}"
            else:
                contents.insert(0, {"role": "user", "parts": [{"text": system}]})

        return {
            "contents": contents,
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
                **self.config.extra_params
            }
        }

    async def stream(
        self,
        messages: List[AIMessage],
        model: str,
        api_key: str
    ) -> AsyncIterator[str]:
        """Stream chat response"""
        url = f"/v1beta/models/{model}:streamGenerateContent"

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.timeout,
                transport=self._transport
            ) as client:
                async with client.stream(
                    "POST",
                    url,
                    params={"alt": "sse"},
                    headers={"x-goog-api-key": api_key},
                    json=self.translate(messages)
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", "replace")
                        logger.error(f"Gemini HTTP {response.status_code} ({model}): {body[:200]}")
                        raise translate_google_status(response.status_code, body)

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if not data:
                            continue
                        try:
                            event = json.loads(data)
                        except json.JSONDecodeError:
                            logger.warning(f"Skipping malformed Gemini event: {data[:100]}")
                            continue
                        text = extract_text(event)
                        if text:
                            yield text
        except httpx.HTTPError as e:
            logger.error(f"Gemini transport error ({model}): {e}")
            raise ProviderError(f"Google request failed: {e}") from e
