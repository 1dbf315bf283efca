"""
Shared fixtures: fake embeddings, fake provider adapters, temp storage.
"""

import os
import tempfile

# Keep test runs from writing into ./logs
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="ragchat-test-logs-"))

import pytest

from core.ai.base import AIProviderConfig, ProviderAdapter, ProviderFamily
from core.ai.credentials import PlaceholderPolicy
from modules.storage.sqlite_store import SQLiteStore


class KeywordEmbedder:
    """
    Deterministic stand-in for the embedding service.

    Each vocabulary word is one dimension; a text's vector counts the words
    it contains. Texts sharing words are therefore similar.
    """

    def __init__(self, vocabulary, fail_on=None):
        self.vocabulary = list(vocabulary)
        self.fail_on = fail_on
        self.calls = []

    async def embed(self, text):
        from core.errors import EmbeddingError

        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise EmbeddingError("embedding service unavailable")
        lowered = text.lower()
        vector = [float(lowered.count(word)) for word in self.vocabulary]
        if not any(vector):
            vector[-1] = 0.01
        return vector

    async def embed_many(self, texts):
        return [await self.embed(t) for t in texts]

    async def close(self):
        pass


class ScriptedAdapter(ProviderAdapter):
    """Provider adapter replaying fixed fragments, optionally failing"""

    def __init__(self, family, fragments=(), fail_after=None, error=None):
        super().__init__(AIProviderConfig(family=family))
        self.family = family
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.error = error
        self.calls = []
        self.closed = False

    def translate(self, messages):
        return {"messages": [(m.role, m.content) for m in messages]}

    async def stream(self, messages, model, api_key):
        self.calls.append({"messages": messages, "model": model, "api_key": api_key})
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise self.error
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise self.error
        finally:
            self.closed = True


def scripted_adapters(**overrides):
    """One ScriptedAdapter per family; overrides keyed by family value"""
    adapters = {}
    for family in ProviderFamily:
        adapters[family] = overrides.get(family.value) or ScriptedAdapter(family, ["Hello", " world"])
    return adapters


@pytest.fixture
def policy():
    return PlaceholderPolicy()


@pytest.fixture
def sqlite_store():
    """Temporary SQLite registry"""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = SQLiteStore(os.path.join(tmpdir, "test.db"))
        store.initialize()
        yield store
        store.close()
