"""
Test Configuration Loading

Run with: pytest tests/test_config.py -v
"""

import pytest

from core.ai.base import ProviderFamily
from core.ai.credentials import ClientKeys, CredentialKind, CredentialSource
from core.config import load_app_config
from utils.config import ConfigManager, deep_merge
from utils.logger import get_logger, mask_secrets


@pytest.fixture
def manager(tmp_path):
    (tmp_path / "settings.yaml").write_text(
        "credentials:\n"
        "  placeholder_patterns:\n"
        "    - ^demo-\n"
        "generation:\n"
        "  default_model: claude-3-haiku-20240307\n"
        "  temperature: 0.2\n"
        "  max_tokens:\n"
        "    google: 2048\n"
        "retrieval:\n"
        "  similarity_threshold: 0.6\n"
        "storage:\n"
        "  passage_backend: chroma\n",
        encoding="utf-8"
    )
    manager = ConfigManager(str(tmp_path))
    manager.load_global_config()
    return manager


class TestLoadAppConfig:

    def test_settings_file_values(self, manager):
        config = load_app_config(manager, environ={})

        assert config.default_model == "claude-3-haiku-20240307"
        assert config.generation.temperature == 0.2
        assert config.generation.max_tokens[ProviderFamily.GOOGLE] == 2048
        assert config.generation.max_tokens[ProviderFamily.OPENAI] == 4096
        assert config.retrieval.similarity_threshold == 0.6
        assert config.retrieval.max_results == 5
        assert config.storage.passage_backend == "chroma"

    def test_server_keys_classified_once(self, manager):
        config = load_app_config(manager, environ={
            "OPENAI_API_KEY": "sk-live-abc",
            "ANTHROPIC_API_KEY": "demo-key",
        })
        credentials = config.server_credentials

        assert credentials.get(ProviderFamily.OPENAI).kind == CredentialKind.REAL
        assert credentials.get(ProviderFamily.OPENAI).source == CredentialSource.SERVER
        assert credentials.get(ProviderFamily.ANTHROPIC).kind == CredentialKind.PLACEHOLDER
        assert credentials.get(ProviderFamily.GOOGLE).kind == CredentialKind.ABSENT

    def test_database_path_from_environment(self, manager):
        config = load_app_config(manager, environ={"DATABASE_PATH": "/tmp/other.db"})

        assert config.storage.database_path == "/tmp/other.db"

    def test_missing_settings_file_uses_defaults(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "nowhere"))
        manager.load_global_config()

        config = load_app_config(manager, environ={})

        assert config.default_model == "gpt-4o-mini"
        assert config.chunking.max_length == 1000
        assert config.chunking.overlap == 200
        assert config.streaming.queue_size == 64


class TestPlaceholderPolicy:

    @pytest.mark.parametrize("key", [
        "fallback-development-key",
        "sk-fallback-1234",
        "DEVELOPMENT_MODE_API_KEY",
        "sk-ant-fallback-key",
        "AIza-fallback",
        "dev-key-for-testing",
    ])
    def test_default_placeholders(self, policy, key):
        assert policy.is_placeholder(key)

    @pytest.mark.parametrize("key", ["sk-proj-abc123", "sk-ant-api03-xyz", "AIzaSyD-real"])
    def test_real_keys(self, policy, key):
        assert not policy.is_placeholder(key)

    def test_client_keys_drop_blank_entries(self, policy):
        keys = ClientKeys.from_raw({"openai": "", "anthropic": None, "google": "AIzaSyD-real"}, policy)

        assert set(keys.credentials) == {ProviderFamily.GOOGLE}
        assert keys.get(ProviderFamily.OPENAI).kind == CredentialKind.ABSENT

    def test_key_is_not_in_repr(self, policy):
        credential = policy.classify("sk-proj-secret", CredentialSource.CLIENT)

        assert "sk-proj-secret" not in repr(credential)


class TestLogging:

    def test_api_keys_masked(self):
        line = mask_secrets("retrying with sk-proj-abcdef123456 and AIzaSyD123456789")

        assert "abcdef123456" not in line
        assert "sk-proj-***" in line
        assert "AIza***" in line

    def test_short_tokens_untouched(self):
        assert mask_secrets("gpt-4o via sk-1") == "gpt-4o via sk-1"

    def test_component_loggers_share_root(self):
        logger = get_logger('rag.retriever')

        assert logger.name == 'ragchat.rag.retriever'
        assert logger.parent.name == 'ragchat'


def test_deep_merge_keeps_unnamed_defaults():
    merged = deep_merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}})

    assert merged == {"a": {"x": 1, "y": 3}, "b": 1}
