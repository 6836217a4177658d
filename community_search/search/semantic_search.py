"""Semantic branch: embed the query and search member vectors."""
from typing import Any, Dict, List

from community_search.models.entities import CandidateMatch, MemberProfile
from community_search.search.search_filter import SearchFilter
from community_search.services.embedding_service import EmbeddingProvider
from community_search.services.vector_db_service import VectorDBService
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def _as_int(value: Any):
    # Pinecone returns numeric metadata as floats
    try:
        return int(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def profile_from_metadata(member_id: str, metadata: Dict[str, Any]) -> MemberProfile:
    return MemberProfile(
        member_id=member_id,
        name=metadata.get("name"),
        phone=metadata.get("phone"),
        email=metadata.get("email"),
        city=metadata.get("city_display") or metadata.get("city"),
        organization=metadata.get("organization"),
        designation=metadata.get("designation"),
        skills=_as_list(metadata.get("skills")),
        services=_as_list(metadata.get("services")),
        graduation_year=_as_int(metadata.get("graduation_year")),
        degree=metadata.get("degree"),
        branch=metadata.get("branch"),
        annual_turnover=_as_int(metadata.get("annual_turnover")),
    )


def clamp_similarity(score: float) -> float:
    return max(0.0, min(1.0, float(score)))


class SemanticSearchEngine:
    def __init__(self, embedding_provider: EmbeddingProvider, vector_db: VectorDBService):
        self.embedding_provider = embedding_provider
        self.vector_db = vector_db

    async def search(self, query_text: str, search_filter: SearchFilter, top_k: int) -> List[CandidateMatch]:
        """Nearest members by cosine similarity, restricted by the filter."""
        query_vector = await self.embedding_provider.embed(query_text)
        matches = await self.vector_db.query_vectors(
            query_vector,
            top_k=top_k,
            filter_dict=search_filter.to_vector_filter(),
        )

        candidates = []
        for match in matches:
            member_id = str(match["id"])
            profile = profile_from_metadata(member_id, match.get("metadata") or {})
            candidates.append(CandidateMatch(
                member_id=member_id,
                semantic_score=clamp_similarity(match.get("score", 0.0)),
                matched_fields=search_filter.matched_fields(profile),
                profile=profile,
            ))

        logger.info(
            f"Semantic search returned {len(candidates)} candidates",
            extra={"candidates": len(candidates), "top_k": top_k}
        )
        return candidates
