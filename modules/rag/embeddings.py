"""
Embedding Client - Text to Vector

Uses the OpenAI embeddings endpoint with the server-side OpenAI key.
"""

from typing import Callable, List, Optional

from openai import AsyncOpenAI, OpenAIError

from core.ai.credentials import ProviderCredential
from core.config import EmbeddingSettings
from core.errors import EmbeddingError
from utils.logger import get_logger

logger = get_logger('rag.embeddings')


class EmbeddingClient:
    """
    Produces one embedding vector per text.

    Every vector from one client has the same dimensionality
    (1536 for text-embedding-3-small).
    """

    def __init__(
        self,
        credential: ProviderCredential,
        settings: Optional[EmbeddingSettings] = None,
        client_factory: Optional[Callable[..., AsyncOpenAI]] = None
    ):
        self.credential = credential
        self.settings = settings or EmbeddingSettings()
        self._client_factory = client_factory or AsyncOpenAI
        self._client: Optional[AsyncOpenAI] = None

        logger.info(f"EmbeddingClient initialized (model={self.settings.model})")

    def _get_client(self) -> AsyncOpenAI:
        if not self.credential.usable:
            raise EmbeddingError(
                f"No usable OpenAI key for embeddings ({self.credential.kind.value})"
            )
        if self._client is None:
            self._client = self._client_factory(
                api_key=self.credential.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout
            )
        return self._client

    async def embed(self, text: str) -> List[float]:
        """
        Embed one text.

        Raises:
            EmbeddingError: on any service or credential failure
        """
        client = self._get_client()
        try:
            response = await client.embeddings.create(
                model=self.settings.model,
                input=text,
                encoding_format="float"
            )
        except OpenAIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingError(str(e)) from e

        if not response.data:
            raise EmbeddingError("Embedding service returned no vector")
        return list(response.data[0].embedding)

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        """Embed texts one after another; the first failure aborts"""
        vectors = []
        for i, text in enumerate(texts):
            vectors.append(await self.embed(text))
            logger.debug(f"Embedded chunk {i + 1}/{len(texts)}")
        return vectors

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
