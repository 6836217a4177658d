"""In-memory cache for query embeddings with LRU eviction and TTL."""
import time
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

from community_search.utils.logging import get_logger

logger = get_logger(__name__)


class EmbeddingCache:
    """Query text -> embedding, bounded in size and age."""

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 300,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.clock = clock or time.monotonic
        # OrderedDict for LRU eviction: value is (stored_at, embedding)
        self._cache: "OrderedDict[str, Tuple[float, List[float]]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(text: str) -> str:
        return " ".join(text.lower().split())

    def get(self, text: str) -> Optional[List[float]]:
        key = self._key(text)
        entry = self._cache.get(key)
        if entry is None:
            self.misses += 1
            return None

        stored_at, embedding = entry
        if self.clock() - stored_at > self.ttl_seconds:
            del self._cache[key]
            self.misses += 1
            return None

        # Move to end (most recently used)
        self._cache.move_to_end(key)
        self.hits += 1
        return embedding

    def put(self, text: str, embedding: List[float]) -> None:
        key = self._key(text)
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self.max_size:
            oldest_key, _ = self._cache.popitem(last=False)
            logger.debug(
                "Embedding cache full, evicted oldest entry",
                extra={"evicted": oldest_key[:50], "cache_size": len(self._cache)}
            )
        self._cache[key] = (self.clock(), embedding)

    def __len__(self) -> int:
        return len(self._cache)
