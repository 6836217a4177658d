"""Domain models and request/response validation."""
from community_search.models.entities import (
    CandidateMatch,
    ConversationTurn,
    EntitySet,
    ExtractedQuery,
    ExtractionMethod,
    Intent,
    MemberProfile,
    RankedPage,
    RankedResult,
    TurnoverTier,
)
from community_search.models.query_models import QueryRequest, QueryResponse, SessionResponse

__all__ = [
    "CandidateMatch",
    "ConversationTurn",
    "EntitySet",
    "ExtractedQuery",
    "ExtractionMethod",
    "Intent",
    "MemberProfile",
    "RankedPage",
    "RankedResult",
    "TurnoverTier",
    "QueryRequest",
    "QueryResponse",
    "SessionResponse",
]
