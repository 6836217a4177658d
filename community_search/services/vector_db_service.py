"""Read-only vector search over member embeddings: Pinecone with a FAISS fallback."""
import asyncio
import os
import pickle
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import numpy as np

from community_search.config import settings
from community_search.utils.logging import get_logger

logger = get_logger(__name__)

# Try importing Pinecone
try:
    from pinecone import Pinecone
    PINECONE_AVAILABLE = True
except ImportError:
    PINECONE_AVAILABLE = False
    logger.warning("Pinecone not available, will use FAISS fallback")

# Try importing FAISS
try:
    import faiss
    FAISS_AVAILABLE = True
except ImportError:
    FAISS_AVAILABLE = False
    logger.warning("FAISS not available")


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def _matches_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        condition = {"$eq": condition}

    for op, expected in condition.items():
        if isinstance(value, list):
            # List metadata matches when any element satisfies the operator
            if not any(_matches_condition(item, {op: expected}) for item in value):
                return False
            continue

        value_cmp = _lower(value)
        if op == "$eq":
            ok = value_cmp == _lower(expected)
        elif op == "$ne":
            ok = value_cmp != _lower(expected)
        elif op == "$in":
            ok = value_cmp in [_lower(e) for e in expected]
        elif op == "$nin":
            ok = value_cmp not in [_lower(e) for e in expected]
        elif op in ("$gt", "$gte", "$lt", "$lte"):
            if value is None:
                return False
            ok = {
                "$gt": value > expected,
                "$gte": value >= expected,
                "$lt": value < expected,
                "$lte": value <= expected,
            }[op]
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
        if not ok:
            return False
    return True


def matches_filter(metadata: Dict[str, Any], filter_dict: Optional[Dict[str, Any]]) -> bool:
    """Evaluate a Pinecone-style metadata filter locally (used by the FAISS fallback)."""
    if not filter_dict:
        return True
    for key, condition in filter_dict.items():
        if key == "$and":
            if not all(matches_filter(metadata, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches_filter(metadata, sub) for sub in condition):
                return False
        elif key not in metadata or not _matches_condition(metadata.get(key), condition):
            return False
    return True


class VectorDBService(ABC):
    """Abstract base class for vector database operations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the vector database."""
        pass

    @abstractmethod
    async def query_vectors(
        self,
        query_vector: List[float],
        top_k: int,
        filter_dict: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Query similar vectors. Each match is {"id", "score", "metadata"}."""
        pass


class PineconeVectorDB(VectorDBService):
    """Pinecone implementation of vector database service."""

    def __init__(self):
        self.pc = None
        self.index = None
        self.index_name = settings.pinecone_index_name
        self.namespace = settings.pinecone_namespace

    async def initialize(self) -> None:
        """Connect to the existing member index."""
        if not PINECONE_AVAILABLE:
            raise RuntimeError("Pinecone library not installed")

        if not settings.use_pinecone:
            raise RuntimeError("Pinecone API key not configured")

        try:
            self.pc = Pinecone(api_key=settings.pinecone_api_key)

            existing_indexes = [idx.name for idx in self.pc.list_indexes()]
            if self.index_name not in existing_indexes:
                # Index creation belongs to the embedding backfill job
                raise RuntimeError(f"Pinecone index '{self.index_name}' does not exist")

            self.index = self.pc.Index(self.index_name)
            logger.info(f"Pinecone initialized: {self.index_name}")

        except Exception as e:
            logger.error(f"Failed to initialize Pinecone: {e}", extra={"error": str(e)})
            raise

    async def query_vectors(
        self,
        query_vector: List[float],
        top_k: int,
        filter_dict: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Query similar vectors from Pinecone."""
        if not self.index:
            raise RuntimeError("Pinecone index not initialized")

        try:
            # Pinecone query is synchronous, run in thread pool for async compatibility
            loop = asyncio.get_running_loop()
            results = await loop.run_in_executor(
                None,
                lambda: self.index.query(
                    vector=query_vector,
                    top_k=top_k,
                    include_metadata=True,
                    filter=filter_dict or None,
                    namespace=self.namespace,
                )
            )

            matches = []
            for match in results.get("matches", []):
                matches.append({
                    "id": match.get("id"),
                    "score": match.get("score", 0.0),
                    "metadata": match.get("metadata") or {}
                })

            return matches

        except Exception as e:
            logger.error(f"Failed to query Pinecone: {e}", extra={"error": str(e)})
            raise


class FAISSVectorDB(VectorDBService):
    """FAISS implementation of vector database service (fallback)."""

    def __init__(
        self,
        index_path: Optional[str] = None,
        metadata_path: Optional[str] = None,
        dimension: Optional[int] = None,
    ):
        self.index = None
        self.metadata_store: Dict[str, Dict[str, Any]] = {}
        self.index_to_id: Dict[int, str] = {}
        self.dimension = dimension or settings.embedding_dimension
        self.faiss_index_path = index_path or settings.faiss_index_path
        self.metadata_path = metadata_path or settings.faiss_metadata_path

    async def initialize(self) -> None:
        """Load the FAISS index written by the embedding backfill job."""
        if not FAISS_AVAILABLE:
            raise RuntimeError("FAISS library not installed")

        try:
            if os.path.exists(self.faiss_index_path) and os.path.exists(self.metadata_path):
                logger.info("Loading existing FAISS index from disk")
                self.index = faiss.read_index(self.faiss_index_path)
                with open(self.metadata_path, "rb") as f:
                    data = pickle.load(f)
                    self.metadata_store = data.get("metadata", {})
                    self.index_to_id = data.get("index_to_id", {})
            else:
                # Empty index: every semantic query returns no candidates
                logger.info("No FAISS index on disk, starting with an empty index")
                self.index = faiss.IndexFlatIP(self.dimension)  # Inner product for cosine similarity

            logger.warning(
                "Using FAISS as fallback vector database. Data stored locally.",
                extra={"index_path": self.faiss_index_path, "vectors": self.index.ntotal}
            )

        except Exception as e:
            logger.error(f"Failed to initialize FAISS: {e}", extra={"error": str(e)})
            raise

    def add_vectors(self, vectors: List[Dict[str, Any]]) -> int:
        """Load vectors into the in-memory index ({"id", "embedding", "metadata"} each)."""
        if self.index is None:
            raise RuntimeError("FAISS index not initialized")

        rows = []
        for vec_data in vectors:
            embedding = np.array(vec_data["embedding"], dtype=np.float32)
            norm = np.linalg.norm(embedding)
            if norm > 0:
                embedding = embedding / norm
            rows.append(embedding)

        if not rows:
            return 0
        start_idx = self.index.ntotal
        self.index.add(np.vstack(rows).astype(np.float32))
        for offset, vec_data in enumerate(vectors):
            vector_id = str(vec_data["id"])
            self.index_to_id[start_idx + offset] = vector_id
            self.metadata_store[vector_id] = vec_data.get("metadata", {})
        return len(rows)

    async def query_vectors(
        self,
        query_vector: List[float],
        top_k: int,
        filter_dict: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Query similar vectors from FAISS."""
        if self.index is None:
            raise RuntimeError("FAISS index not initialized")

        try:
            # FAISS operations are CPU-bound, run in thread pool
            loop = asyncio.get_running_loop()

            def _query():
                query_array = np.array(query_vector, dtype=np.float32).reshape(1, -1)
                norm = np.linalg.norm(query_array)
                if norm > 0:
                    query_array = query_array / norm

                # Filtering happens after the search, so scan the whole index when filtered
                k = self.index.ntotal if filter_dict else min(top_k, self.index.ntotal)
                if k == 0:
                    return []

                distances, indices = self.index.search(query_array, k)

                matches = []
                for distance, idx in zip(distances[0], indices[0]):
                    if idx == -1:  # FAISS returns -1 for invalid results
                        continue

                    vector_id = self.index_to_id.get(int(idx))
                    if not vector_id:
                        continue

                    metadata = self.metadata_store.get(vector_id, {})
                    if not matches_filter(metadata, filter_dict):
                        continue

                    matches.append({
                        "id": vector_id,
                        "score": float(distance),  # Cosine similarity from inner product
                        "metadata": metadata
                    })
                    if len(matches) >= top_k:
                        break

                return matches

            return await loop.run_in_executor(None, _query)

        except Exception as e:
            logger.error(f"Failed to query FAISS: {e}", extra={"error": str(e)})
            raise


async def get_vector_db_service() -> VectorDBService:
    """
    Factory function to get appropriate vector DB service.
    Uses Pinecone if available, otherwise falls back to FAISS.
    """
    if settings.use_pinecone and PINECONE_AVAILABLE:
        try:
            service = PineconeVectorDB()
            await service.initialize()
            return service
        except Exception as e:
            logger.warning(
                f"Failed to initialize Pinecone, falling back to FAISS: {e}",
                extra={"error": str(e)}
            )

    service = FAISSVectorDB()
    await service.initialize()
    return service
