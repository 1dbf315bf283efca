"""
Passage Store - In-Memory Vector Storage

Brute-force cosine similarity over stored passages. Used for development,
the CLI and tests; the Chroma backend lives in modules.rag.chroma_store.
"""

import asyncio
import math
from typing import Dict, List, Optional, Collection

from modules.rag.base import Passage, PassageMatch, PassageStore
from utils.logger import get_logger

logger = get_logger('rag.passage_store')


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """Cosine of the angle between two vectors (0.0 for a zero vector)"""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryPassageStore(PassageStore):
    """
    Passages kept in a dict, searched by scanning.

    Has no native document filter: search() ignores document_ids and the
    retriever filters the candidates itself.
    """

    supports_document_filter = False

    def __init__(self):
        self._passages: Dict[str, Passage] = {}
        self._dimension: Optional[int] = None
        self._lock = asyncio.Lock()

        logger.info("InMemoryPassageStore initialized")

    def _check_dimension(self, vector: List[float]):
        if self._dimension is not None and len(vector) != self._dimension:
            raise ValueError(
                f"Vector dimension {len(vector)} does not match store dimension {self._dimension}"
            )

    async def add(self, passages: List[Passage]) -> None:
        async with self._lock:
            for passage in passages:
                self._check_dimension(passage.vector)
                if self._dimension is None:
                    self._dimension = len(passage.vector)
            for passage in passages:
                self._passages[passage.id] = passage

        logger.debug(f"Stored {len(passages)} passages (total: {len(self._passages)})")

    async def search(
        self,
        vector: List[float],
        limit: int,
        threshold: float,
        document_ids: Optional[Collection[str]] = None
    ) -> List[PassageMatch]:
        self._check_dimension(vector)

        matches = []
        for passage in list(self._passages.values()):
            similarity = cosine_similarity(vector, passage.vector)
            if similarity >= threshold:
                matches.append(PassageMatch(passage, similarity))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    async def delete_document(self, document_id: str) -> int:
        async with self._lock:
            doomed = [pid for pid, p in self._passages.items() if p.document_id == document_id]
            for pid in doomed:
                del self._passages[pid]

        if doomed:
            logger.info(f"Deleted {len(doomed)} passages of document {document_id}")
        return len(doomed)

    async def count(self, document_id: Optional[str] = None) -> int:
        if document_id is None:
            return len(self._passages)
        return sum(1 for p in self._passages.values() if p.document_id == document_id)
