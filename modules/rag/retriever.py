"""
RAG Retriever - Semantic Search and Context Assembly

Embeds the query, searches the passage store, and turns the matches into a
bounded context block for the model prompt.
"""

import asyncio
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from core.config import RetrievalSettings
from core.errors import RetrievalError, ValidationError
from modules.rag.base import DocumentCatalog, PassageMatch, PassageStore, RetrievalResult
from modules.rag.embeddings import EmbeddingClient
from utils.logger import get_logger

logger = get_logger('rag.retriever')

CONTEXT_START = "---CONTEXT START---\n\n"
CONTEXT_END = "---CONTEXT END---\n\n"
TRUNCATION_SUFFIX = "... (truncated)"
UNKNOWN_DOCUMENT = "Unknown file"


def format_context(results: Sequence[RetrievalResult], max_length: int = 5000) -> str:
    """
    Format results for the AI prompt.

    Passages are grouped by document name (in order of first appearance),
    one section per document. The returned string is never longer than
    max_length; a cut block ends with "... (truncated)".

    Args:
        results: Retrieved results, best first
        max_length: Max character length

    Returns:
        Formatted context block ("" when there are no results)
    """
    if not results:
        return ""

    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for result in results:
        groups.setdefault(result.document_name, []).append(result.passage_text)

    sections = [CONTEXT_START]
    for name, passages in groups.items():
        sections.append(f"File: {name}\n\n")
        sections.append("\n\n".join(passages))
        sections.append("\n\n---\n\n")
    sections.append(CONTEXT_END)
    context = "".join(sections)

    if len(context) > max_length:
        cut = max(max_length - len(TRUNCATION_SUFFIX), 0)
        context = (context[:cut] + TRUNCATION_SUFFIX)[:max_length]

    return context


class Retriever:
    """
    Query-time retrieval:
    1. embed the query
    2. similarity search (bounded by a timeout)
    3. threshold, document filter, dedupe, rank, cap
    4. resolve document names
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: PassageStore,
        catalog: Optional[DocumentCatalog] = None,
        settings: Optional[RetrievalSettings] = None
    ):
        self.embedder = embedder
        self.store = store
        self.catalog = catalog
        self.settings = settings or RetrievalSettings()

        logger.info(
            f"Retriever initialized (max_results={self.settings.max_results}, "
            f"threshold={self.settings.similarity_threshold}, "
            f"native_filter={store.supports_document_filter})"
        )

    async def _search(
        self,
        vector: List[float],
        limit: int,
        threshold: float,
        document_ids: Optional[List[str]]
    ) -> List[PassageMatch]:
        """Store search; any backend failure becomes RetrievalError"""
        try:
            return await asyncio.wait_for(
                self.store.search(vector, limit, threshold, document_ids),
                timeout=self.settings.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise RetrievalError(
                f"Passage search timed out after {self.settings.timeout_seconds}s"
            ) from e
        except Exception as e:
            raise RetrievalError(f"Passage search failed: {e}") from e

    async def _document_names(self, document_ids: List[str]) -> Dict[str, str]:
        if self.catalog is None or not document_ids:
            return {}
        try:
            return await self.catalog.document_names(document_ids)
        except Exception as e:
            logger.warning(f"Document name lookup failed: {e}")
            return {}

    async def retrieve(
        self,
        query: str,
        document_ids: Optional[Sequence[str]] = None,
        max_results: Optional[int] = None,
        threshold: Optional[float] = None
    ) -> List[RetrievalResult]:
        """
        Retrieve relevant passages.

        Args:
            query: Search query
            document_ids: Restrict to these documents (None or empty: all)
            max_results: Number of results (default from settings)
            threshold: Minimum similarity (default from settings)

        Returns:
            Results ranked by descending similarity, all >= threshold.
            Empty when the search backend fails or times out.

        Raises:
            ValidationError: empty query or bad parameters
            EmbeddingError: the query could not be embedded
        """
        if not query or not query.strip():
            raise ValidationError("Query is required")

        max_results = self.settings.max_results if max_results is None else max_results
        threshold = self.settings.similarity_threshold if threshold is None else threshold
        if max_results < 1:
            raise ValidationError("max_results must be at least 1")
        if not 0.0 <= threshold <= 1.0:
            raise ValidationError("similarity_threshold must be between 0 and 1")

        wanted = list(dict.fromkeys(document_ids)) if document_ids else None

        # Filter before the cap: without native filtering ask for more candidates
        limit = max_results
        if wanted and not self.store.supports_document_filter:
            limit = max_results * max(self.settings.filter_overfetch, 1)

        vector = await self.embedder.embed(query)

        try:
            matches = await self._search(vector, limit, threshold, wanted)
        except RetrievalError as e:
            logger.warning(f"Retrieval degraded to no context: {e}")
            return []

        if wanted:
            allowed = set(wanted)
            matches = [m for m in matches if m.passage.document_id in allowed]

        matches = [m for m in matches if m.similarity >= threshold]
        matches.sort(key=lambda m: m.similarity, reverse=True)

        seen = set()
        unique: List[PassageMatch] = []
        for match in matches:
            key = (match.passage.document_id, match.passage.text)
            if key in seen:
                continue
            seen.add(key)
            unique.append(match)
        unique = unique[:max_results]

        names = await self._document_names(list({m.passage.document_id for m in unique}))

        results = [
            RetrievalResult(
                passage_text=m.passage.text,
                document_id=m.passage.document_id,
                document_name=names.get(m.passage.document_id, UNKNOWN_DOCUMENT),
                similarity=min(max(m.similarity, 0.0), 1.0)
            )
            for m in unique
        ]

        logger.info(f"Retrieved {len(results)} results for: {query[:80]}")
        return results

    def format_context(self, results: Sequence[RetrievalResult], max_length: Optional[int] = None) -> str:
        return format_context(
            results,
            self.settings.max_context_length if max_length is None else max_length
        )

    async def context_for_prompt(
        self,
        query: str,
        document_ids: Optional[Sequence[str]] = None,
        max_results: Optional[int] = None,
        threshold: Optional[float] = None,
        max_length: Optional[int] = None
    ) -> Dict[str, object]:
        """Retrieve and format in one step"""
        results = await self.retrieve(query, document_ids, max_results, threshold)
        return {
            "context": self.format_context(results, max_length),
            "total_results": len(results)
        }
