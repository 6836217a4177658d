"""Keyword branch: ranked full-text match over the member directory."""
from typing import List

from community_search.models.entities import CandidateMatch
from community_search.repositories.member_repo import MemberRepository
from community_search.search.search_filter import SearchFilter
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


class KeywordSearchEngine:
    def __init__(self, member_repo: MemberRepository):
        self.member_repo = member_repo

    async def search(self, query_text: str, search_filter: SearchFilter, top_k: int) -> List[CandidateMatch]:
        """Full-text hits with rank scaled by the best rank in this result set."""
        rows = await self.member_repo.full_text_search(query_text, search_filter, limit=top_k)
        if not rows:
            logger.info("Keyword search returned no candidates")
            return []

        max_rank = max(rank for _, rank in rows)
        divisor = max_rank if max_rank > 0 else 1.0

        candidates = [
            CandidateMatch(
                member_id=profile.member_id,
                keyword_score=max(0.0, min(1.0, rank / divisor)),
                matched_fields=search_filter.matched_fields(profile),
                profile=profile,
            )
            for profile, rank in rows
        ]
        logger.info(
            f"Keyword search returned {len(candidates)} candidates",
            extra={"candidates": len(candidates), "max_rank": max_rank}
        )
        return candidates
