"""Domain models shared by extraction, retrieval and formatting."""
from enum import Enum
from typing import Dict, List, Optional, Set
from pydantic import BaseModel, ConfigDict, Field


class Intent(str, Enum):
    """What the caller is trying to do."""
    FIND_BUSINESS = "find_business"
    FIND_PEERS = "find_peers"
    FIND_SPECIFIC_PERSON = "find_specific_person"
    FIND_ALUMNI_BUSINESS = "find_alumni_business"
    GET_INFO = "get_info"
    LIST_MEMBERS = "list_members"
    COMPARE = "compare"


class ExtractionMethod(str, Enum):
    REGEX = "regex"
    LLM = "llm"
    HYBRID = "hybrid"


class TurnoverTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


ENTITY_FIELDS = (
    "skills",
    "services",
    "location",
    "turnover_tier",
    "graduation_years",
    "degree",
    "branch",
    "name",
)

ARRAY_FIELDS = ("skills", "services", "graduation_years", "degree", "branch")
SCALAR_FIELDS = ("location", "turnover_tier", "name")


class EntitySet(BaseModel):
    """Structured constraints pulled out of a query. All strings are canonical."""
    skills: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    turnover_tier: Optional[TurnoverTier] = None
    graduation_years: List[int] = Field(default_factory=list)
    degree: List[str] = Field(default_factory=list)
    branch: List[str] = Field(default_factory=list)
    name: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(getattr(self, field) for field in ENTITY_FIELDS)

    def populated_fields(self) -> List[str]:
        return [field for field in ENTITY_FIELDS if getattr(self, field)]

    def project(self, allowed: Set[str]) -> "EntitySet":
        """Copy keeping only the allowed fields."""
        data = {field: getattr(self, field) for field in ENTITY_FIELDS if field in allowed}
        return EntitySet(**data)


# Fields each intent's response template knows how to use
INTENT_TEMPLATE_FIELDS: Dict[Intent, Set[str]] = {
    Intent.FIND_BUSINESS: {"skills", "services", "location", "turnover_tier", "name"},
    Intent.FIND_PEERS: {"graduation_years", "degree", "branch", "location", "skills", "name"},
    Intent.FIND_SPECIFIC_PERSON: {"name", "location", "graduation_years", "branch", "degree"},
    Intent.FIND_ALUMNI_BUSINESS: set(ENTITY_FIELDS),
    Intent.GET_INFO: set(ENTITY_FIELDS),
    Intent.LIST_MEMBERS: set(ENTITY_FIELDS),
    Intent.COMPARE: set(ENTITY_FIELDS),
}


class ExtractedQuery(BaseModel):
    """Result of query understanding."""
    intent: Intent
    secondary_intent: Optional[Intent] = None
    entities: EntitySet = Field(default_factory=EntitySet)
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: ExtractionMethod
    normalized_query_text: str


class IntentResult(BaseModel):
    primary: Intent
    secondary: Optional[Intent] = None
    confidence: float


class RegexExtraction(BaseModel):
    entities: EntitySet
    confidence: float
    matched_patterns: List[str] = Field(default_factory=list)


class LLMExtraction(BaseModel):
    intent: Intent
    entities: EntitySet
    confidence: float


class MemberProfile(BaseModel):
    """Member fields returned by the search backends."""
    member_id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    organization: Optional[str] = None
    designation: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    graduation_year: Optional[int] = None
    degree: Optional[str] = None
    branch: Optional[str] = None
    annual_turnover: Optional[int] = None


class CandidateMatch(BaseModel):
    """One branch's view of a matching member."""
    member_id: str
    semantic_score: Optional[float] = None
    keyword_score: Optional[float] = None
    matched_fields: Set[str] = Field(default_factory=set)
    profile: Optional[MemberProfile] = None


class RankedResult(BaseModel):
    member_id: str
    final_score: float = Field(..., ge=0.0, le=1.0)
    matched_fields: List[str] = Field(default_factory=list)
    profile: Optional[MemberProfile] = None


class RankedPage(BaseModel):
    results: List[RankedResult] = Field(default_factory=list)
    total_results: int = 0
    semantic_ok: bool = True
    keyword_ok: bool = True


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    query_text: str
    timestamp_ms: int
    intent: Intent
    entities: EntitySet = Field(default_factory=EntitySet)
    result_count: int = 0
    search_text: Optional[str] = Field(default=None, description="Text sent to the ranker for this turn")
    page: int = 1
    page_size: Optional[int] = None


class ConversationSession(BaseModel):
    session_key: str
    history: List[ConversationTurn] = Field(default_factory=list)
    last_activity_ms: int
