"""
RAG System - Retrieval Augmented Generation

Ingests user documents into embedded passages and retrieves context for prompts.
"""

from modules.rag.base import (
    DocumentType,
    DocumentRecord,
    Passage,
    PassageMatch,
    RetrievalResult,
    TextChunker,
    PassageStore,
    DocumentCatalog
)

from modules.rag.chunker import SmartChunker, iter_chunks
from modules.rag.embeddings import EmbeddingClient
from modules.rag.passage_store import InMemoryPassageStore
from modules.rag.loaders import get_loader_registry, LoaderRegistry
from modules.rag.indexer import DocumentIndexer, IndexStats
from modules.rag.retriever import Retriever, format_context

__all__ = [
    # Base types
    'DocumentType',
    'DocumentRecord',
    'Passage',
    'PassageMatch',
    'RetrievalResult',

    # Interfaces
    'TextChunker',
    'PassageStore',
    'DocumentCatalog',

    # Implementations
    'SmartChunker',
    'iter_chunks',
    'EmbeddingClient',
    'InMemoryPassageStore',
    'LoaderRegistry',
    'get_loader_registry',
    'DocumentIndexer',
    'IndexStats',
    'Retriever',
    'format_context'
]
