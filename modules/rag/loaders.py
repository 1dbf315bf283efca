"""
Document Loaders - Text Extraction

Turns a stored upload into plain text for chunking.
Supports plain text, markdown, JSON and PDF.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, List

from pypdf import PdfReader

from core.errors import ValidationError
from modules.rag.base import DocumentType
from utils.logger import get_logger

logger = get_logger('rag.loaders')

MIME_TYPES = {
    "text/plain": DocumentType.TXT,
    "text/markdown": DocumentType.MARKDOWN,
    "text/x-markdown": DocumentType.MARKDOWN,
    "application/json": DocumentType.JSON,
    "application/pdf": DocumentType.PDF,
}

EXTENSIONS = {
    ".txt": DocumentType.TXT,
    ".text": DocumentType.TXT,
    ".md": DocumentType.MARKDOWN,
    ".markdown": DocumentType.MARKDOWN,
    ".json": DocumentType.JSON,
    ".pdf": DocumentType.PDF,
}


def detect_type(file_path: str, mime_type: Optional[str] = None) -> Optional[DocumentType]:
    """Document type from the MIME type, falling back to the extension"""
    if mime_type:
        doc_type = MIME_TYPES.get(mime_type.split(";")[0].strip().lower())
        if doc_type:
            return doc_type
    return EXTENSIONS.get(Path(file_path).suffix.lower())


class DocumentLoader(ABC):
    """Base interface for text extraction"""

    types: tuple = ()

    def can_load(self, doc_type: Optional[DocumentType]) -> bool:
        return doc_type in self.types

    @abstractmethod
    def load(self, file_path: str) -> str:
        """Extract the text of a file"""
        pass


# ===== TEXT LOADER =====

class TextLoader(DocumentLoader):
    """Load plain text and markdown files"""

    types = (DocumentType.TXT, DocumentType.MARKDOWN)

    def load(self, file_path: str) -> str:
        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()

        logger.info(f"Loaded text: {Path(file_path).name} ({len(content)} chars)")
        return content


# ===== JSON LOADER =====

class JSONLoader(DocumentLoader):
    """Load JSON files, pretty-printed so keys and values stay readable"""

    types = (DocumentType.JSON,)

    def load(self, file_path: str) -> str:
        with open(file_path, 'r', encoding='utf-8') as f:
            raw = f.read()

        try:
            content = json.dumps(json.loads(raw), indent=2, ensure_ascii=False)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON in {Path(file_path).name}, indexing raw text")
            content = raw

        logger.info(f"Loaded JSON: {Path(file_path).name} ({len(content)} chars)")
        return content


# ===== PDF LOADER =====

class PDFLoader(DocumentLoader):
    """Load PDF files"""

    types = (DocumentType.PDF,)

    def load(self, file_path: str) -> str:
        reader = PdfReader(file_path)

        pages = []
        for page_num, page in enumerate(reader.pages):
            try:
                text = page.extract_text() or ""
            except Exception as e:
                logger.warning(f"Failed to extract page {page_num}: {e}")
                continue
            if text.strip():
                pages.append(text)

        content = "\n\n".join(pages)
        logger.info(f"Loaded PDF: {Path(file_path).name} ({len(content)} chars, {len(reader.pages)} pages)")
        return content


# ===== LOADER REGISTRY =====

class LoaderRegistry:
    """Registry for document loaders"""

    def __init__(self):
        self.loaders: List[DocumentLoader] = [
            TextLoader(),
            JSONLoader(),
            PDFLoader()
        ]

        logger.info(f"LoaderRegistry initialized with {len(self.loaders)} loaders")

    def get_loader(self, file_path: str, mime_type: Optional[str] = None) -> Optional[DocumentLoader]:
        """Get appropriate loader for file"""
        doc_type = detect_type(file_path, mime_type)
        for loader in self.loaders:
            if loader.can_load(doc_type):
                return loader
        return None

    def extract_text(self, file_path: str, mime_type: Optional[str] = None) -> str:
        """
        Extract the text of a document.

        Raises:
            ValidationError: unsupported file type
            FileNotFoundError: file is gone
        """
        loader = self.get_loader(file_path, mime_type)
        if not loader:
            raise ValidationError(f"unsupported file type: {mime_type or Path(file_path).suffix}")
        return loader.load(file_path)


# Global instance

_loader_registry = None

def get_loader_registry() -> LoaderRegistry:
    """Get or create global loader registry"""
    global _loader_registry
    if _loader_registry is None:
        _loader_registry = LoaderRegistry()
    return _loader_registry
