"""Runs both search branches under one deadline and merges them into a ranked page."""
import asyncio
from typing import Dict, List, Optional

from community_search.config import PipelineConfig
from community_search.exceptions import RetrievalBranchFailure, RetrievalTotalFailure
from community_search.models.entities import CandidateMatch, RankedPage, RankedResult
from community_search.search.keyword_search import KeywordSearchEngine
from community_search.search.search_filter import SearchFilter
from community_search.search.semantic_search import SemanticSearchEngine
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


def merge_candidates(
    semantic: List[CandidateMatch],
    keyword: List[CandidateMatch],
    semantic_weight: float,
    keyword_weight: float,
) -> List[RankedResult]:
    """
    Combine both branches by member id.

    Members seen by both branches get the weighted sum. Members seen by one
    branch keep that branch's score exactly (its weight renormalized to 1).
    Ordering is (final_score desc, member_id asc).
    """
    merged: Dict[str, CandidateMatch] = {}

    for candidate in semantic:
        existing = merged.get(candidate.member_id)
        if existing is None:
            merged[candidate.member_id] = candidate.model_copy(deep=True)
            continue
        if (candidate.semantic_score or 0.0) > (existing.semantic_score or 0.0):
            existing.semantic_score = candidate.semantic_score
        existing.matched_fields |= candidate.matched_fields

    for candidate in keyword:
        existing = merged.get(candidate.member_id)
        if existing is None:
            merged[candidate.member_id] = candidate.model_copy(deep=True)
            continue
        if existing.keyword_score is None or (candidate.keyword_score or 0.0) > existing.keyword_score:
            existing.keyword_score = candidate.keyword_score
        existing.matched_fields |= candidate.matched_fields
        # Directory rows are fresher than vector metadata
        if candidate.profile is not None:
            existing.profile = candidate.profile

    total_weight = semantic_weight + keyword_weight
    results = []
    for member_id, candidate in merged.items():
        s, k = candidate.semantic_score, candidate.keyword_score
        if s is not None and k is not None:
            final = (semantic_weight * s + keyword_weight * k) / total_weight
        elif s is not None:
            final = s
        else:
            final = k or 0.0

        results.append(RankedResult(
            member_id=member_id,
            final_score=_clamp(final),
            matched_fields=sorted(candidate.matched_fields),
            profile=candidate.profile,
        ))

    results.sort(key=lambda r: (-r.final_score, r.member_id))
    return results


def paginate(results: List[RankedResult], page: int, page_size: int) -> List[RankedResult]:
    offset = (page - 1) * page_size
    return results[offset:offset + page_size]


class HybridRanker:
    """
    Drives the semantic and keyword engines concurrently.

    A branch that fails or misses the deadline is cancelled and logged; the
    other branch's results are used alone. Only when both fail does ranking
    raise RetrievalTotalFailure.
    """

    def __init__(
        self,
        semantic_engine: SemanticSearchEngine,
        keyword_engine: KeywordSearchEngine,
        config: PipelineConfig,
    ):
        self.semantic_engine = semantic_engine
        self.keyword_engine = keyword_engine
        self.config = config

    async def _run_branches(self, query_text: str, search_filter: SearchFilter) -> Dict[str, object]:
        pool_size = self.config.candidate_pool_size
        tasks = {
            "semantic": asyncio.create_task(self.semantic_engine.search(query_text, search_filter, pool_size)),
            "keyword": asyncio.create_task(self.keyword_engine.search(query_text, search_filter, pool_size)),
        }

        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=self.config.search_deadline_seconds)
        finally:
            # Also runs when rank itself is cancelled; no branch outlives the call
            stragglers = [task for task in tasks.values() if not task.done()]
            for task in stragglers:
                task.cancel()
            if stragglers:
                await asyncio.gather(*stragglers, return_exceptions=True)

        outcomes: Dict[str, object] = {}
        for branch, task in tasks.items():
            if task in pending:
                outcomes[branch] = RetrievalBranchFailure(
                    branch, asyncio.TimeoutError(f"deadline of {self.config.search_deadline_seconds}s exceeded")
                )
            elif task.exception() is not None:
                outcomes[branch] = RetrievalBranchFailure(branch, task.exception())
            else:
                outcomes[branch] = task.result()
        return outcomes

    async def rank(
        self,
        query_text: str,
        search_filter: SearchFilter,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> RankedPage:
        page_size = page_size or self.config.default_page_size
        outcomes = await self._run_branches(query_text, search_filter)

        failures = [o for o in outcomes.values() if isinstance(o, RetrievalBranchFailure)]
        for failure in failures:
            logger.warning(
                f"Search branch degraded: {failure}",
                extra={"branch": failure.branch, "error": str(failure.cause)}
            )
        if len(failures) == len(outcomes):
            raise RetrievalTotalFailure(failures)

        semantic = outcomes["semantic"] if not isinstance(outcomes["semantic"], RetrievalBranchFailure) else []
        keyword = outcomes["keyword"] if not isinstance(outcomes["keyword"], RetrievalBranchFailure) else []

        ranked = merge_candidates(semantic, keyword, self.config.semantic_weight, self.config.keyword_weight)
        logger.info(
            f"Ranked {len(ranked)} candidates (semantic={len(semantic)}, keyword={len(keyword)})",
            extra={"total": len(ranked), "semantic": len(semantic), "keyword": len(keyword), "page": page}
        )
        return RankedPage(
            results=paginate(ranked, page, page_size),
            total_results=len(ranked),
            semantic_ok="semantic" not in {f.branch for f in failures},
            keyword_ok="keyword" not in {f.branch for f in failures},
        )
