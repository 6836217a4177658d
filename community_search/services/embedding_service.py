"""Service for generating query embeddings using OLLAMA."""
import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional
import httpx
from httpx import Timeout
import numpy as np

from community_search.config import PipelineConfig, settings
from community_search.services.embedding_cache import EmbeddingCache
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


class EmbeddingProvider(ABC):
    """Maps text to a unit-length vector."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        pass


class EmbeddingService(EmbeddingProvider):
    """Service for generating embeddings using OLLAMA API."""

    def __init__(
        self,
        config: PipelineConfig,
        cache: Optional[EmbeddingCache] = None,
        ollama_host: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.config = config
        self.ollama_host = ollama_host or settings.ollama_host
        self.model = model or settings.embedding_model
        self.embedding_dimension = settings.embedding_dimension
        self.cache = cache

    async def _request_embedding(self, text: str) -> List[float]:
        async with httpx.AsyncClient(timeout=Timeout(self.config.embedding_timeout_seconds)) as client:
            response = await client.post(
                f"{self.ollama_host}/api/embeddings",
                json={
                    "model": self.model,
                    "prompt": text,
                }
            )
            response.raise_for_status()
            embedding = response.json().get("embedding", [])

        if not embedding:
            raise ValueError("Empty embedding returned")
        if len(embedding) != self.embedding_dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.embedding_dimension}, got {len(embedding)}"
            )

        # Normalize embedding
        embedding_array = np.array(embedding, dtype=np.float32)
        norm = np.linalg.norm(embedding_array)
        if norm > 0:
            embedding_array = embedding_array / norm
        return embedding_array.tolist()

    async def embed(self, text: str) -> List[float]:
        """Generate embedding for a query, with one retry on transient failure."""
        if self.cache is not None:
            cached = self.cache.get(text)
            if cached is not None:
                return cached

        attempts = 1 + self.config.embedding_retries
        for attempt in range(attempts):
            try:
                embedding = await self._request_embedding(text)
                if self.cache is not None:
                    self.cache.put(text, embedding)
                return embedding
            except (httpx.TransportError, httpx.HTTPStatusError) as e:
                if attempt < attempts - 1:
                    wait_time = 0.2 * (2 ** attempt)
                    logger.warning(
                        f"Embedding generation failed, retrying in {wait_time}s: {e}",
                        extra={"attempt": attempt + 1, "error": str(e)}
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"Failed to generate embedding after {attempts} attempts: {e}")
                    raise RuntimeError(f"Failed to generate embedding: {e}") from e

        raise RuntimeError("Failed to generate embedding")
