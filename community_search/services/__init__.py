"""Adapters for external services: embeddings, vector store and LLM completion."""
from community_search.services.embedding_cache import EmbeddingCache
from community_search.services.embedding_service import EmbeddingProvider, EmbeddingService
from community_search.services.llm_client import (
    CompletionClient,
    FallbackCompletionClient,
    OllamaCompletionClient,
)
from community_search.services.vector_db_service import VectorDBService, get_vector_db_service

__all__ = [
    "EmbeddingCache",
    "EmbeddingProvider",
    "EmbeddingService",
    "CompletionClient",
    "FallbackCompletionClient",
    "OllamaCompletionClient",
    "VectorDBService",
    "get_vector_db_service",
]
