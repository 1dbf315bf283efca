"""
RAG System - Base Interfaces

Defines core types and interfaces for document ingestion and retrieval.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Iterable, Collection
from datetime import datetime, timezone
from enum import Enum


class DocumentType(Enum):
    """Supported document types"""
    PDF = "pdf"
    TXT = "txt"
    MARKDOWN = "md"
    JSON = "json"


@dataclass
class DocumentRecord:
    """A user-uploaded file, as the document registry knows it"""
    id: str
    user_id: str
    name: str
    file_path: str
    mime_type: str = "text/plain"
    description: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Passage:
    """A chunk of document text with its embedding; immutable once stored"""
    document_id: str
    owner_id: str
    text: str
    vector: List[float]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class PassageMatch:
    """A stored passage and its similarity to a query vector"""
    passage: Passage
    similarity: float


@dataclass
class RetrievalResult:
    """Result from RAG retrieval (transient, never persisted)"""
    passage_text: str
    document_id: str
    document_name: str
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'content': self.passage_text,
            'document_id': self.document_id,
            'document_name': self.document_name,
            'similarity': self.similarity
        }


# Abstract Interfaces

class TextChunker(ABC):
    """Base interface for text chunking"""

    @abstractmethod
    def chunk(self, text: str) -> List[str]:
        """Split text into chunks"""
        pass


class PassageStore(ABC):
    """
    Vector storage with similarity search.

    One embedding dimensionality per store: a vector of another size is
    rejected with ValueError.
    """

    # True when search() honours document_ids itself
    supports_document_filter: bool = False

    @abstractmethod
    async def add(self, passages: List[Passage]) -> None:
        """Persist passages"""
        pass

    @abstractmethod
    async def search(
        self,
        vector: List[float],
        limit: int,
        threshold: float,
        document_ids: Optional[Collection[str]] = None
    ) -> List[PassageMatch]:
        """
        Closest passages, best first, none below threshold.

        Stores without native document filtering ignore document_ids.
        """
        pass

    @abstractmethod
    async def delete_document(self, document_id: str) -> int:
        """Delete every passage of a document, return how many"""
        pass

    @abstractmethod
    async def count(self, document_id: Optional[str] = None) -> int:
        """Number of stored passages (optionally for one document)"""
        pass


class DocumentCatalog(ABC):
    """Lookup side of the external document registry"""

    @abstractmethod
    async def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        """Document record or None"""
        pass

    @abstractmethod
    async def document_names(self, document_ids: Iterable[str]) -> Dict[str, str]:
        """Display names for the given ids (unknown ids are left out)"""
        pass
