"""
Application Configuration

Typed view over config/settings.yaml plus the environment. Built once at
startup and injected into the router and services; nothing below this
module reads os.environ.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from core.ai.base import ProviderFamily
from core.ai.credentials import (
    CredentialKind, PlaceholderPolicy, ServerCredentials, DEFAULT_PLACEHOLDER_PATTERNS
)
from utils.config import ConfigManager, get_config_manager
from utils.logger import get_logger

logger = get_logger('config')

SERVER_KEY_ENV = {
    ProviderFamily.OPENAI: "OPENAI_API_KEY",
    ProviderFamily.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderFamily.GOOGLE: "GOOGLE_API_KEY",
}


@dataclass
class ChunkingSettings:
    max_length: int = 1000
    overlap: int = 200


@dataclass
class EmbeddingSettings:
    model: str = "text-embedding-3-small"
    timeout: float = 30.0
    base_url: Optional[str] = None


@dataclass
class RetrievalSettings:
    max_results: int = 5
    similarity_threshold: float = 0.75
    max_context_length: int = 5000
    timeout_seconds: float = 10.0
    # Extra candidates requested when the store filters documents client-side
    filter_overfetch: int = 4


@dataclass
class GenerationSettings:
    temperature: float = 0.7
    timeout: float = 60.0
    max_tokens: Dict[ProviderFamily, int] = field(default_factory=lambda: {
        ProviderFamily.OPENAI: 4096,
        ProviderFamily.ANTHROPIC: 4096,
        ProviderFamily.GOOGLE: 8192,
    })


@dataclass
class StreamingSettings:
    queue_size: int = 64
    disconnect_poll_interval: float = 0.5


@dataclass
class StorageSettings:
    database_path: str = "data/ragchat.db"
    passage_backend: str = "memory"  # memory | chroma
    chroma_path: str = "data/chromadb"
    chroma_collection: str = "passages"


@dataclass
class AppConfig:
    """Everything the services need, resolved once"""
    server_credentials: ServerCredentials = field(default_factory=ServerCredentials)
    placeholder_policy: PlaceholderPolicy = field(default_factory=PlaceholderPolicy)
    default_model: str = "gpt-4o-mini"
    chunking: ChunkingSettings = field(default_factory=ChunkingSettings)
    embedding: EmbeddingSettings = field(default_factory=EmbeddingSettings)
    retrieval: RetrievalSettings = field(default_factory=RetrievalSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    streaming: StreamingSettings = field(default_factory=StreamingSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)


def load_app_config(
    manager: Optional[ConfigManager] = None,
    environ: Optional[Dict[str, str]] = None
) -> AppConfig:
    """
    Build AppConfig from settings.yaml and environment variables.

    Args:
        manager: Config manager (default: global one, settings loaded here)
        environ: Environment mapping (default: os.environ)

    Returns:
        AppConfig
    """
    if manager is None:
        manager = get_config_manager()
        manager.load_global_config()
    environ = os.environ if environ is None else environ

    policy = PlaceholderPolicy(
        manager.get('credentials.placeholder_patterns', DEFAULT_PLACEHOLDER_PATTERNS)
    )

    server_credentials = ServerCredentials.from_keys(
        {family: environ.get(var) for family, var in SERVER_KEY_ENV.items()},
        policy
    )
    for family in ProviderFamily:
        kind = server_credentials.get(family).kind
        if kind == CredentialKind.PLACEHOLDER:
            logger.warning(f"Server key for {family.value} is a development placeholder")
        else:
            logger.info(f"Server key for {family.value}: {kind.value}")

    generation = GenerationSettings(
        temperature=float(manager.get('generation.temperature', 0.7)),
        timeout=float(manager.get('generation.timeout', 60.0)),
    )
    for family in ProviderFamily:
        configured = manager.get(f'generation.max_tokens.{family.value}')
        if configured is not None:
            generation.max_tokens[family] = int(configured)

    storage = StorageSettings(
        database_path=environ.get('DATABASE_PATH') or manager.get('storage.database_path', "data/ragchat.db"),
        passage_backend=manager.get('storage.passage_backend', "memory"),
        chroma_path=manager.get('storage.chroma_path', "data/chromadb"),
        chroma_collection=manager.get('storage.chroma_collection', "passages"),
    )

    return AppConfig(
        server_credentials=server_credentials,
        placeholder_policy=policy,
        default_model=manager.get('generation.default_model', "gpt-4o-mini"),
        chunking=ChunkingSettings(
            max_length=int(manager.get('chunking.max_length', 1000)),
            overlap=int(manager.get('chunking.overlap', 200)),
        ),
        embedding=EmbeddingSettings(
            model=manager.get('embedding.model', "text-embedding-3-small"),
            timeout=float(manager.get('embedding.timeout', 30.0)),
            base_url=manager.get('embedding.base_url'),
        ),
        retrieval=RetrievalSettings(
            max_results=int(manager.get('retrieval.max_results', 5)),
            similarity_threshold=float(manager.get('retrieval.similarity_threshold', 0.75)),
            max_context_length=int(manager.get('retrieval.max_context_length', 5000)),
            timeout_seconds=float(manager.get('retrieval.timeout_seconds', 10.0)),
            filter_overfetch=int(manager.get('retrieval.filter_overfetch', 4)),
        ),
        generation=generation,
        streaming=StreamingSettings(
            queue_size=int(manager.get('streaming.queue_size', 64)),
            disconnect_poll_interval=float(manager.get('streaming.disconnect_poll_interval', 0.5)),
        ),
        storage=storage,
    )
