"""
Passage Store - ChromaDB Backend

Persistent passage storage with native document filtering.
ChromaDB calls are blocking, so they run in a worker thread.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Collection

import chromadb
from chromadb.config import Settings

from modules.rag.base import Passage, PassageMatch, PassageStore
from utils.logger import get_logger

logger = get_logger('rag.chroma_store')


class ChromaPassageStore(PassageStore):
    """
    ChromaDB implementation for passage storage.

    Vectors are computed by the embedding client and handed to Chroma as-is;
    the collection uses cosine distance, so similarity = 1 - distance.
    Chroma itself rejects vectors whose dimension differs from the collection's.
    """

    supports_document_filter = True

    def __init__(
        self,
        persist_directory: str = "data/chromadb",
        collection_name: str = "passages",
        client: Optional[Any] = None
    ):
        if client is None:
            path = Path(persist_directory)
            path.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(
                path=str(path),
                settings=Settings(anonymized_telemetry=False)
            )

        self.client = client
        self.collection_name = collection_name
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine", "description": "Document passages"}
        )

        logger.info(f"ChromaPassageStore initialized ({self.collection.count()} passages)")

    @staticmethod
    def _metadata(passage: Passage) -> Dict[str, str]:
        return {
            "document_id": passage.document_id,
            "owner_id": passage.owner_id,
            "created_at": passage.created_at.isoformat(),
        }

    async def add(self, passages: List[Passage]) -> None:
        if not passages:
            return

        await asyncio.to_thread(
            self.collection.add,
            ids=[p.id for p in passages],
            embeddings=[list(p.vector) for p in passages],
            documents=[p.text for p in passages],
            metadatas=[self._metadata(p) for p in passages]
        )
        logger.debug(f"Added {len(passages)} passages to {self.collection_name}")

    async def search(
        self,
        vector: List[float],
        limit: int,
        threshold: float,
        document_ids: Optional[Collection[str]] = None
    ) -> List[PassageMatch]:
        query: Dict[str, Any] = {
            "query_embeddings": [list(vector)],
            "n_results": limit,
            "include": ["documents", "metadatas", "distances", "embeddings"],
        }
        if document_ids:
            query["where"] = {"document_id": {"$in": list(document_ids)}}

        results = await asyncio.to_thread(self.collection.query, **query)

        matches = []
        if results['ids'] and len(results['ids'][0]) > 0:
            embeddings = results.get('embeddings')
            for i, passage_id in enumerate(results['ids'][0]):
                similarity = 1.0 - results['distances'][0][i]
                if similarity < threshold:
                    continue

                metadata = results['metadatas'][0][i]
                stored_vector = embeddings[0][i] if embeddings is not None else []
                matches.append(PassageMatch(
                    passage=Passage(
                        id=passage_id,
                        document_id=metadata['document_id'],
                        owner_id=metadata.get('owner_id', ''),
                        text=results['documents'][0][i],
                        vector=[float(x) for x in stored_vector],
                        created_at=datetime.fromisoformat(metadata['created_at'])
                    ),
                    similarity=similarity
                ))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        logger.debug(f"Chroma search found {len(matches)} passages")
        return matches

    async def delete_document(self, document_id: str) -> int:
        existing = await asyncio.to_thread(
            self.collection.get,
            where={"document_id": document_id},
            include=[]
        )
        ids = existing['ids']
        if ids:
            await asyncio.to_thread(self.collection.delete, ids=ids)
            logger.info(f"Deleted {len(ids)} passages of document {document_id}")
        return len(ids)

    async def count(self, document_id: Optional[str] = None) -> int:
        if document_id is None:
            return await asyncio.to_thread(self.collection.count)
        existing = await asyncio.to_thread(
            self.collection.get,
            where={"document_id": document_id},
            include=[]
        )
        return len(existing['ids'])
