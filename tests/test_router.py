"""
Test Completion Router

Run with: pytest tests/test_router.py -v
"""

import pytest

from core.ai.base import AIMessage, ProviderFamily, family_for_model
from core.ai.credentials import (
    ClientKeys, CredentialKind, CredentialSource, ServerCredentials
)
from core.ai.router import CompletionRouter, MODEL_CATALOG

from conftest import ScriptedAdapter, scripted_adapters


MESSAGES = [AIMessage("user", "Tell me a joke")]


def make_router(policy, server_keys=None, **adapter_overrides):
    server = ServerCredentials.from_keys(server_keys or {}, policy)
    return CompletionRouter(scripted_adapters(**adapter_overrides), server)


async def collect(stream):
    return [fragment async for fragment in stream]


class TestRouting:

    @pytest.mark.parametrize("model, family", [
        ("gpt-4o-mini", ProviderFamily.OPENAI),
        ("o1-preview", ProviderFamily.OPENAI),
        ("claude-3-haiku-20240307", ProviderFamily.ANTHROPIC),
        ("gemini-1.5-pro", ProviderFamily.GOOGLE),
    ])
    def test_prefix_routing(self, policy, model, family):
        assert family_for_model(model) == family
        assert make_router(policy).route(model) == family

    def test_unknown_model_falls_back(self, policy):
        router = make_router(policy)
        assert family_for_model("llama-3-70b") is None
        assert router.route("llama-3-70b") == ProviderFamily.OPENAI

    def test_requires_every_family(self):
        with pytest.raises(ValueError):
            CompletionRouter({ProviderFamily.OPENAI: ScriptedAdapter(ProviderFamily.OPENAI)})


class TestCredentialPrecedence:

    def test_client_key_wins(self, policy):
        router = make_router(policy, {ProviderFamily.OPENAI: "sk-server-real"})
        keys = ClientKeys.from_raw({"openai": "sk-client-real"}, policy)

        routed = router.resolve("gpt-4o", keys)

        assert routed.credential.source == CredentialSource.CLIENT
        assert routed.credential.api_key == "sk-client-real"
        assert not routed.development_mode

    def test_server_key_when_client_absent(self, policy):
        router = make_router(policy, {ProviderFamily.ANTHROPIC: "sk-ant-server-real"})

        routed = router.resolve("claude-3-opus-20240229", ClientKeys.from_raw({"anthropic": "  "}, policy))

        assert routed.credential.source == CredentialSource.SERVER
        assert routed.credential.api_key == "sk-ant-server-real"

    def test_client_placeholder_not_replaced_by_server_key(self, policy):
        router = make_router(policy, {ProviderFamily.OPENAI: "sk-server-real"})
        keys = ClientKeys.from_raw({"openai": "sk-fallback-123"}, policy)

        routed = router.resolve("gpt-4o", keys)

        assert routed.credential.kind == CredentialKind.PLACEHOLDER
        assert routed.development_mode

    def test_absent_everywhere(self, policy):
        routed = make_router(policy).resolve("gemini-1.5-flash")

        assert routed.credential.kind == CredentialKind.ABSENT
        assert routed.development_mode

    def test_key_for_other_family_is_ignored(self, policy):
        router = make_router(policy)
        keys = ClientKeys.from_raw({"openai": "sk-client-real"}, policy)

        assert router.resolve("claude-3-haiku-20240307", keys).development_mode


class TestDevelopmentMode:

    @pytest.mark.asyncio
    async def test_no_key_never_calls_provider(self, policy):
        adapter = ScriptedAdapter(ProviderFamily.OPENAI, ["should", "not", "appear"])
        router = make_router(policy, openai=adapter)

        routed = router.resolve("gpt-4o")
        text = "".join(await collect(routed.stream(MESSAGES)))

        assert adapter.calls == []
        assert "This is a development mode response" in text
        assert "No model was called" in text
        assert text.endswith("Tell me a joke")

    @pytest.mark.asyncio
    async def test_placeholder_reply(self, policy):
        adapter = ScriptedAdapter(ProviderFamily.ANTHROPIC)
        router = make_router(policy, {ProviderFamily.ANTHROPIC: "sk-ant-fallback-key"}, anthropic=adapter)

        text = await router.resolve("claude-3-haiku-20240307").complete(MESSAGES)

        assert adapter.calls == []
        assert "placeholder API key" in text
        assert "No Anthropic model was called" in text

    @pytest.mark.asyncio
    async def test_real_key_streams_from_adapter(self, policy):
        adapter = ScriptedAdapter(ProviderFamily.GOOGLE, ["Knock", " knock"])
        router = make_router(policy, {ProviderFamily.GOOGLE: "AIza-real-key"}, google=adapter)

        fragments = await collect(router.resolve("gemini-1.5-pro").stream(MESSAGES))

        assert fragments == ["Knock", " knock"]
        assert adapter.calls[0]["api_key"] == "AIza-real-key"
        assert adapter.calls[0]["model"] == "gemini-1.5-pro"

    @pytest.mark.asyncio
    async def test_closing_routed_stream_closes_adapter(self, policy):
        adapter = ScriptedAdapter(ProviderFamily.OPENAI, ["a", "b", "c"])
        router = make_router(policy, {ProviderFamily.OPENAI: "sk-real"}, openai=adapter)

        stream = router.resolve("gpt-4o").stream(MESSAGES)
        assert await stream.__anext__() == "a"
        await stream.aclose()

        assert adapter.closed


class TestAvailableModels:

    def providers(self, models):
        return {m["provider"] for m in models}

    def test_only_families_with_real_keys(self, policy):
        router = make_router(policy, {ProviderFamily.ANTHROPIC: "sk-ant-server-real"})
        keys = ClientKeys.from_raw({"google": "AIza-client-real"}, policy)

        models = router.available_models(keys)

        assert self.providers(models) == {"anthropic", "google"}

    def test_no_keys_no_models(self, policy):
        assert make_router(policy).available_models() == []

    def test_placeholder_lists_everything(self, policy):
        keys = ClientKeys.from_raw({"openai": "DEVELOPMENT_MODE_API_KEY"}, policy)

        models = make_router(policy).available_models(keys)

        assert len(models) == sum(len(v) for v in MODEL_CATALOG.values())
