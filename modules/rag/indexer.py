"""
Document Indexer - Process and Store Documents

Turns a registered document into embedded passages.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from core.errors import AssistantError, DocumentNotFoundError, ValidationError
from modules.rag.base import Passage, PassageStore, TextChunker
from modules.rag.chunker import SmartChunker
from modules.rag.embeddings import EmbeddingClient
from modules.rag.loaders import LoaderRegistry, get_loader_registry
from utils.logger import get_logger

if TYPE_CHECKING:
    from modules.storage.sqlite_store import SQLiteStore

logger = get_logger('rag.indexer')


@dataclass
class IndexStats:
    """Outcome of processing one document"""
    document_id: str
    characters: int
    chunks: int
    passages: int


class DocumentIndexer:
    """
    Indexes documents for retrieval.

    Process:
    1. Fetch the document record
    2. Extract text (TXT/MD/JSON/PDF)
    3. Chunk text, drop empty chunks
    4. Embed every chunk (one failure aborts the document)
    5. Replace the document's passages
    """

    def __init__(
        self,
        documents: "SQLiteStore",
        passages: PassageStore,
        embedder: EmbeddingClient,
        chunker: Optional[TextChunker] = None,
        loaders: Optional[LoaderRegistry] = None
    ):
        self.documents = documents
        self.passages = passages
        self.embedder = embedder
        self.chunker = chunker or SmartChunker()
        self.loaders = loaders or get_loader_registry()

        logger.info("DocumentIndexer initialized")

    async def process_document(self, document_id: str) -> IndexStats:
        """
        Index one document.

        Raises:
            DocumentNotFoundError: unknown id or file gone from disk
            ValidationError: unsupported file type or no text
            EmbeddingError: a chunk could not be embedded (nothing persisted)
        """
        record = await self.documents.get_document(document_id)
        if record is None:
            raise DocumentNotFoundError(f"File not found with ID: {document_id}")

        try:
            text = await asyncio.to_thread(
                self.loaders.extract_text, record.file_path, record.mime_type
            )
        except FileNotFoundError as e:
            raise DocumentNotFoundError(f"File not found: {record.file_path}") from e

        chunks = [c for c in self.chunker.chunk(text) if c.strip()]
        if not chunks:
            raise ValidationError("Document contains no text")

        logger.info(f"Processing {record.name}: {len(text)} chars, {len(chunks)} chunks")

        try:
            vectors = await self.embedder.embed_many(chunks)
        except AssistantError:
            logger.error(f"Embedding failed for {record.name}, document not indexed")
            raise

        passages = [
            Passage(document_id=record.id, owner_id=record.user_id, text=chunk, vector=vector)
            for chunk, vector in zip(chunks, vectors)
        ]

        # Re-processing replaces the previous passages
        replaced = await self.passages.delete_document(record.id)
        try:
            await self.passages.add(passages)
        except Exception:
            logger.error(f"Failed to store passages for {record.name}", exc_info=True)
            await self.passages.delete_document(record.id)
            raise

        if replaced:
            logger.info(f"Replaced {replaced} old passages of {record.name}")
        logger.info(f"Indexed {record.name}: {len(passages)} passages")

        return IndexStats(
            document_id=record.id,
            characters=len(text),
            chunks=len(chunks),
            passages=len(passages)
        )

    async def delete_document(self, document_id: str) -> int:
        """
        Delete a document and, first, all of its passages.

        Returns:
            Number of passages removed
        """
        record = await self.documents.get_document(document_id)
        if record is None:
            raise DocumentNotFoundError(f"File not found with ID: {document_id}")

        removed = await self.passages.delete_document(document_id)
        await asyncio.to_thread(self.documents.remove_document, document_id)

        logger.info(f"Deleted document {record.name} ({removed} passages)")
        return removed
