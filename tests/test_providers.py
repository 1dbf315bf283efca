"""
Test Provider Adapters

Wire-format translation per family, streaming through each transport and
error mapping. No network: SDK clients are faked, Gemini goes through
httpx.MockTransport.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import anthropic
import httpx
import openai
import pytest

from core.ai.base import AIMessage, AIProviderConfig, ProviderFamily, validate_conversation, inject_context
from core.ai.openai_provider import OpenAIProvider, translate_openai_error
from core.ai.anthropic_provider import AnthropicProvider, translate_anthropic_error
from core.ai.google_provider import GoogleProvider, translate_google_status, extract_text
from core.errors import CredentialError, RateLimitError, ProviderError, ValidationError


CONVERSATION = [
    AIMessage(role="system", content="You are terse."),
    AIMessage(role="user", content="Hi"),
    AIMessage(role="user", content="Are you there?"),
    AIMessage(role="assistant", content="Yes."),
    AIMessage(role="assistant", content="What do you need?"),
    AIMessage(role="user", content="A joke"),
]


def config(family, **kwargs):
    return AIProviderConfig(family=family, **kwargs)


def status_response(status):
    return httpx.Response(status, request=httpx.Request("POST", "https://example.invalid/v1"))


async def collect(stream):
    return [fragment async for fragment in stream]


# ============================================
# CONVERSATION CHECKS
# ============================================

class TestConversationShape:

    def test_valid(self):
        validate_conversation(CONVERSATION)

    @pytest.mark.parametrize("messages, message", [
        ([], "Conversation history not provided"),
        ([AIMessage("user", "hi"), AIMessage("assistant", "hello")], "Last message must be from the user"),
        ([AIMessage("user", "hi"), AIMessage("system", "late"), AIMessage("user", "x")], "System message must be the first message"),
        ([AIMessage("tool", "x"), AIMessage("user", "x")], "Unknown message role: tool"),
    ])
    def test_invalid(self, messages, message):
        with pytest.raises(ValidationError) as exc:
            validate_conversation(messages)
        assert exc.value.public_message == message
        assert exc.value.status_code == 400

    def test_inject_context_extends_system(self):
        merged = inject_context(CONVERSATION, "CTX")
        assert merged[0].content == "You are terse.\n\nCTX"
        assert len(merged) == len(CONVERSATION)
        assert CONVERSATION[0].content == "You are terse."

    def test_inject_context_adds_system(self):
        merged = inject_context([AIMessage("user", "q")], "CTX")
        assert [m.role for m in merged] == ["system", "user"]

    def test_inject_empty_context_is_noop(self):
        assert inject_context(CONVERSATION, "") == CONVERSATION


# ============================================
# FAMILY A - OPENAI
# ============================================

class FakeOpenAIStream:
    def __init__(self, pieces):
        self.pieces = pieces

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for piece in self.pieces:
            choices = [] if piece is None else [SimpleNamespace(delta=SimpleNamespace(content=piece))]
            yield SimpleNamespace(choices=choices)


def fake_openai_client(pieces=(), error=None):
    client = Mock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        client.chat.completions.create = AsyncMock(return_value=FakeOpenAIStream(list(pieces)))
    client.close = AsyncMock()
    return client


class TestOpenAIProvider:

    def test_translate_keeps_system_inline(self):
        payload = OpenAIProvider(config(ProviderFamily.OPENAI)).translate(CONVERSATION)

        assert payload["messages"][0] == {"role": "system", "content": "You are terse."}
        assert len(payload["messages"]) == len(CONVERSATION)

    @pytest.mark.asyncio
    async def test_stream(self):
        client = fake_openai_client(["Hel", None, "", "lo"])
        factory = Mock(return_value=client)
        provider = OpenAIProvider(config(ProviderFamily.OPENAI, temperature=0.2, max_tokens=99), factory)

        fragments = await collect(provider.stream(CONVERSATION, "gpt-4o-mini", "sk-real"))

        assert fragments == ["Hel", "lo"]
        factory.assert_called_once_with("sk-real")
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["stream"] is True
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 99
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rejected_key(self):
        error = openai.AuthenticationError("bad key", response=status_response(401), body=None)
        provider = OpenAIProvider(config(ProviderFamily.OPENAI), Mock(return_value=fake_openai_client(error=error)))

        with pytest.raises(CredentialError) as exc:
            await collect(provider.stream(CONVERSATION, "gpt-4o", "sk-bad"))
        assert exc.value.public_message == "invalid API key"

    @pytest.mark.asyncio
    async def test_reasoning_model_request(self):
        client = fake_openai_client(["Thought ", "through"])
        provider = OpenAIProvider(
            config(ProviderFamily.OPENAI, temperature=0.7, max_tokens=4096), Mock(return_value=client)
        )

        fragments = await collect(provider.stream(CONVERSATION, "o1-mini", "sk-real"))

        assert fragments == ["Thought ", "through"]
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "o1-mini"
        assert kwargs["stream"] is True
        assert kwargs["max_completion_tokens"] == 4096
        assert "temperature" not in kwargs
        assert "max_tokens" not in kwargs
        assert kwargs["messages"][0] == {"role": "developer", "content": "You are terse."}
        assert [m["role"] for m in kwargs["messages"][1:]] == ["user", "user", "assistant", "assistant", "user"]

    def test_chat_model_keeps_system_role(self):
        params = OpenAIProvider(config(ProviderFamily.OPENAI)).request_params(CONVERSATION, "gpt-4o")

        assert params["messages"][0]["role"] == "system"
        assert "max_completion_tokens" not in params

    @pytest.mark.asyncio
    async def test_permission_denied_is_credential_error(self):
        error = openai.PermissionDeniedError("no access", response=status_response(403), body=None)
        provider = OpenAIProvider(config(ProviderFamily.OPENAI), Mock(return_value=fake_openai_client(error=error)))

        with pytest.raises(CredentialError) as exc:
            await collect(provider.stream(CONVERSATION, "gpt-4o", "sk-limited"))
        assert exc.value.status_code == 401

    def test_error_mapping(self):
        assert isinstance(
            translate_openai_error(openai.RateLimitError("slow down", response=status_response(429), body=None)),
            RateLimitError
        )
        assert isinstance(
            translate_openai_error(openai.InternalServerError("boom", response=status_response(500), body=None)),
            ProviderError
        )


# ============================================
# FAMILY B - ANTHROPIC
# ============================================

class FakeAnthropicStream:
    def __init__(self, texts):
        self.texts = texts

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        return self._iterate()

    async def _iterate(self):
        for text in self.texts:
            yield text


def fake_anthropic_client(texts=(), error=None):
    client = Mock()
    if error is not None:
        client.messages.stream = Mock(side_effect=error)
    else:
        client.messages.stream = Mock(return_value=FakeAnthropicStream(list(texts)))
    client.close = AsyncMock()
    return client


class TestAnthropicProvider:

    def test_translate_splits_system(self):
        payload = AnthropicProvider(config(ProviderFamily.ANTHROPIC)).translate(CONVERSATION)

        assert payload["system"] == "You are terse."
        assert all(m["role"] != "system" for m in payload["messages"])
        assert len(payload["messages"]) == len(CONVERSATION) - 1
        assert payload["messages"][0] == {"role": "user", "content": [{"type": "text", "text": "Hi"}]}

    def test_translate_without_system(self):
        payload = AnthropicProvider(config(ProviderFamily.ANTHROPIC)).translate([AIMessage("user", "q")])
        assert "system" not in payload

    @pytest.mark.asyncio
    async def test_stream(self):
        client = fake_anthropic_client(["Why ", "did ", "the"])
        provider = AnthropicProvider(config(ProviderFamily.ANTHROPIC, max_tokens=4096), Mock(return_value=client))

        fragments = await collect(provider.stream(CONVERSATION, "claude-3-haiku-20240307", "sk-ant-real"))

        assert fragments == ["Why ", "did ", "the"]
        kwargs = client.messages.stream.call_args.kwargs
        assert kwargs["system"] == "You are terse."
        assert kwargs["max_tokens"] == 4096
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        error = anthropic.RateLimitError("too many", response=status_response(429), body=None)
        provider = AnthropicProvider(config(ProviderFamily.ANTHROPIC), Mock(return_value=fake_anthropic_client(error=error)))

        with pytest.raises(RateLimitError) as exc:
            await collect(provider.stream(CONVERSATION, "claude-3-opus-20240229", "sk-ant-x"))
        assert exc.value.public_message == "rate limit reached, try again later"
        assert exc.value.status_code == 429

    def test_error_mapping(self):
        assert isinstance(
            translate_anthropic_error(anthropic.AuthenticationError("no", response=status_response(401), body=None)),
            CredentialError
        )
        assert isinstance(
            translate_anthropic_error(anthropic.APIConnectionError(request=httpx.Request("POST", "https://x.invalid"))),
            ProviderError
        )


# ============================================
# FAMILY C - GOOGLE
# ============================================

def sse_body(*texts):
    events = [
        {"candidates": [{"content": {"role": "model", "parts": [{"text": t}]}}]}
        for t in texts
    ]
    return "".join(f"data: {json.dumps(e)}\r\n\r\n" for e in events)


class TestGoogleProvider:

    def test_translate_coalesces_turns(self):
        payload = GoogleProvider(config(ProviderFamily.GOOGLE, max_tokens=8192)).translate(CONVERSATION)
        contents = payload["contents"]

        # user,user | assistant,assistant | user -> 3 entries
        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert [len(c["parts"]) for c in contents] == [2, 2, 1]
        assert contents[0]["parts"][0]["text"] == "You are terse.\n\nHi"
        assert payload["generationConfig"]["maxOutputTokens"] == 8192

    def test_translate_system_before_model_turn(self):
        payload = GoogleProvider(config(ProviderFamily.GOOGLE)).translate([
            AIMessage("system", "Rules"),
            AIMessage("assistant", "Welcome"),
            AIMessage("user", "Hi"),
        ])

        assert payload["contents"][0] == {"role": "user", "parts": [{"text": "Rules"}]}
        assert [c["role"] for c in payload["contents"]] == ["user", "model", "user"]

    def test_extract_text(self):
        assert extract_text({"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}) == "ab"
        assert extract_text({"promptFeedback": {}}) == ""

    @pytest.mark.asyncio
    async def test_stream_over_sse(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = request.url
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            body = sse_body("Knock", " knock") + "data: {not json}\r\n\r\n" + sse_body("!")
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        provider = GoogleProvider(config(ProviderFamily.GOOGLE), transport=httpx.MockTransport(handler))

        fragments = await collect(provider.stream(CONVERSATION, "gemini-1.5-flash", "AIza-real"))

        assert fragments == ["Knock", " knock", "!"]
        assert seen["url"].path == "/v1beta/models/gemini-1.5-flash:streamGenerateContent"
        assert seen["url"].params["alt"] == "sse"
        assert seen["key"] == "AIza-real"
        assert len(seen["body"]["contents"]) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, error", [
        (400, ProviderError),
        (401, CredentialError),
        (403, CredentialError),
        (429, RateLimitError),
        (500, ProviderError),
    ])
    async def test_http_errors(self, status, error):
        transport = httpx.MockTransport(lambda request: httpx.Response(status, text='{"error": "upstream detail"}'))
        provider = GoogleProvider(config(ProviderFamily.GOOGLE), transport=transport)

        with pytest.raises(error) as exc:
            await collect(provider.stream(CONVERSATION, "gemini-1.5-pro", "AIza-x"))
        assert "upstream detail" not in exc.value.public_message

    def test_invalid_key_body(self):
        assert isinstance(translate_google_status(400, "API key not valid. Please pass a valid API key."), CredentialError)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = GoogleProvider(config(ProviderFamily.GOOGLE), transport=httpx.MockTransport(handler))

        with pytest.raises(ProviderError):
            await collect(provider.stream(CONVERSATION, "gemini-1.5-pro", "AIza-x"))
