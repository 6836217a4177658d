"""Pydantic models for the query API."""
from typing import List, Optional
from pydantic import BaseModel, Field

from community_search.models.entities import (
    ConversationTurn,
    EntitySet,
    ExtractionMethod,
    Intent,
    RankedResult,
)


class QueryOptions(BaseModel):
    max_results: Optional[int] = Field(None, description="Page size, 1-50 (default: 10)")
    page: Optional[int] = Field(None, description="1-based page number (default: 1)")


class QueryRequest(BaseModel):
    """Request model for a natural language member search."""
    query: str = Field(..., description="Free-text query, 1-500 characters")
    caller_id: str = Field(..., description="Opaque, already-authenticated caller key")
    options: Optional[QueryOptions] = None


class MemberResult(BaseModel):
    """Individual member result model."""
    member_id: str
    score: float = Field(..., ge=0.0, le=1.0, description="Merged relevance score (0-1)")
    matched_fields: List[str] = []
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    organization: Optional[str] = None
    designation: Optional[str] = None
    skills: List[str] = []
    services: List[str] = []
    graduation_year: Optional[int] = None
    degree: Optional[str] = None
    branch: Optional[str] = None
    annual_turnover: Optional[int] = None

    @classmethod
    def from_ranked(cls, result: RankedResult) -> "MemberResult":
        profile = result.profile.model_dump(exclude={"member_id"}) if result.profile else {}
        return cls(
            member_id=result.member_id,
            score=round(result.final_score, 4),
            matched_fields=list(result.matched_fields),
            **profile,
        )


class Pagination(BaseModel):
    page: int
    total_pages: int
    total_results: int


class QueryResponse(BaseModel):
    """Response model for a member search."""
    intent: Intent
    secondary_intent: Optional[Intent] = None
    entities: EntitySet
    confidence: float
    method: ExtractionMethod
    results: List[MemberResult]
    display_text: str
    suggestions: List[str]
    pagination: Pagination


class SessionResponse(BaseModel):
    """Conversation context currently held for a caller."""
    caller_id: str
    context: str
    turns: List[ConversationTurn]
