"""
Service Factory

Wires configuration, storage, retrieval and routing together. Used by the
API lifespan and by the CLI.
"""

from dataclasses import dataclass

from core.ai.base import ProviderFamily
from core.ai.router import CompletionRouter
from core.config import AppConfig
from core.services.completion_service import CompletionService
from modules.rag.base import PassageStore
from modules.rag.chunker import SmartChunker
from modules.rag.embeddings import EmbeddingClient
from modules.rag.indexer import DocumentIndexer
from modules.rag.passage_store import InMemoryPassageStore
from modules.rag.retriever import Retriever
from modules.storage.sqlite_store import SQLiteStore
from utils.logger import get_logger

logger = get_logger('services.factory')


@dataclass
class Services:
    config: AppConfig
    store: SQLiteStore
    passages: PassageStore
    embedder: EmbeddingClient
    retriever: Retriever
    indexer: DocumentIndexer
    router: CompletionRouter
    completion: CompletionService

    async def close(self):
        await self.embedder.close()
        self.store.close()


def create_passage_store(config: AppConfig) -> PassageStore:
    """Passage store for the configured backend"""
    backend = config.storage.passage_backend
    if backend == "chroma":
        from modules.rag.chroma_store import ChromaPassageStore
        return ChromaPassageStore(config.storage.chroma_path, config.storage.chroma_collection)
    if backend != "memory":
        raise ValueError(f"Unknown passage backend: {backend}")
    return InMemoryPassageStore()


def build_services(config: AppConfig) -> Services:
    """Create every long-lived component from one configuration"""
    store = SQLiteStore(config.storage.database_path)
    store.initialize()

    passages = create_passage_store(config)

    # Embeddings always use the server-side OpenAI key
    embedder = EmbeddingClient(
        config.server_credentials.get(ProviderFamily.OPENAI),
        config.embedding
    )
    if not embedder.credential.usable:
        logger.warning("No real server OpenAI key: document processing and search will fail")

    retriever = Retriever(embedder, passages, store, config.retrieval)
    indexer = DocumentIndexer(
        store,
        passages,
        embedder,
        chunker=SmartChunker(config.chunking.max_length, config.chunking.overlap)
    )

    router = CompletionRouter.from_config(config)
    completion = CompletionService(router, retriever, store, config.streaming)

    logger.info(f"Services ready (passages={config.storage.passage_backend})")
    return Services(
        config=config,
        store=store,
        passages=passages,
        embedder=embedder,
        retriever=retriever,
        indexer=indexer,
        router=router,
        completion=completion
    )
