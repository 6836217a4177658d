"""Tests for hybrid merging, pagination and branch degradation."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from community_search.config import PipelineConfig
from community_search.exceptions import RetrievalTotalFailure
from community_search.models.entities import CandidateMatch, MemberProfile
from community_search.search.hybrid_ranker import HybridRanker, merge_candidates, paginate
from community_search.search.search_filter import SearchFilter


def semantic_hit(member_id, score, fields=(), **profile):
    return CandidateMatch(
        member_id=member_id,
        semantic_score=score,
        matched_fields=set(fields),
        profile=MemberProfile(member_id=member_id, **profile),
    )


def keyword_hit(member_id, score, fields=(), **profile):
    return CandidateMatch(
        member_id=member_id,
        keyword_score=score,
        matched_fields=set(fields),
        profile=MemberProfile(member_id=member_id, **profile),
    )


def engine(result=None, side_effect=None):
    fake = MagicMock()
    fake.search = AsyncMock(return_value=result, side_effect=side_effect)
    return fake


class TestMergeCandidates:
    def test_weighted_merge_and_keyword_only_score(self):
        ranked = merge_candidates(
            [semantic_hit("A", 0.81)],
            [keyword_hit("A", 0.40), keyword_hit("B", 0.90)],
            0.7, 0.3,
        )

        assert [r.member_id for r in ranked] == ["B", "A"]
        assert ranked[0].final_score == pytest.approx(0.90)
        assert ranked[1].final_score == pytest.approx(0.687)

    def test_semantic_only_score_is_kept_exactly(self):
        ranked = merge_candidates([semantic_hit("C", 0.55)], [], 0.7, 0.3)
        assert ranked[0].final_score == pytest.approx(0.55)

    def test_each_member_appears_once(self):
        ranked = merge_candidates(
            [semantic_hit("A", 0.5), semantic_hit("A", 0.6), semantic_hit("B", 0.4)],
            [keyword_hit("A", 1.0), keyword_hit("B", 0.2), keyword_hit("C", 0.3)],
            0.7, 0.3,
        )
        ids = [r.member_id for r in ranked]
        assert sorted(ids) == ["A", "B", "C"]
        assert len(ids) == len(set(ids))

    def test_matched_fields_are_unioned(self):
        ranked = merge_candidates(
            [semantic_hit("A", 0.8, fields={"city"})],
            [keyword_hit("A", 0.5, fields={"branch", "city"})],
            0.7, 0.3,
        )
        assert ranked[0].matched_fields == ["branch", "city"]

    def test_directory_profile_preferred(self):
        ranked = merge_candidates(
            [semantic_hit("A", 0.8, city="chennai")],
            [keyword_hit("A", 0.5, city="Chennai", phone="98400 00000")],
            0.7, 0.3,
        )
        assert ranked[0].profile.city == "Chennai"
        assert ranked[0].profile.phone == "98400 00000"

    def test_equal_scores_order_by_member_id(self):
        ranked = merge_candidates([], [keyword_hit(m, 0.5) for m in ("m3", "m1", "m2")], 0.7, 0.3)
        assert [r.member_id for r in ranked] == ["m1", "m2", "m3"]

    def test_scores_stay_in_unit_interval(self):
        ranked = merge_candidates([semantic_hit("A", 1.0)], [keyword_hit("A", 1.0)], 0.7, 0.3)
        assert 0.0 <= ranked[0].final_score <= 1.0


class TestPaginate:
    def test_pages_are_disjoint_and_cover_all_results(self):
        ranked = merge_candidates([], [keyword_hit(f"m{i:02d}", 0.5) for i in range(25)], 0.7, 0.3)

        pages = [paginate(ranked, page, 10) for page in (1, 2, 3)]

        assert [len(p) for p in pages] == [10, 10, 5]
        seen = [r.member_id for p in pages for r in p]
        assert seen == [r.member_id for r in ranked]
        assert paginate(ranked, 4, 10) == []


class TestHybridRanker:
    @pytest.mark.asyncio
    async def test_rank_merges_both_branches(self, config):
        ranker = HybridRanker(
            engine([semantic_hit("A", 0.81)]),
            engine([keyword_hit("A", 0.40), keyword_hit("B", 0.90)]),
            config,
        )

        page = await ranker.rank("query", SearchFilter(), page=1, page_size=10)

        assert [r.member_id for r in page.results] == ["B", "A"]
        assert page.total_results == 2
        assert page.semantic_ok and page.keyword_ok

    @pytest.mark.asyncio
    async def test_both_branches_get_filter_and_pool_size(self, config):
        semantic, keyword = engine([]), engine([])
        search_filter = SearchFilter(city="Chennai")

        await HybridRanker(semantic, keyword, config).rank("web", search_filter)

        semantic.search.assert_awaited_once_with("web", search_filter, config.candidate_pool_size)
        keyword.search.assert_awaited_once_with("web", search_filter, config.candidate_pool_size)

    @pytest.mark.asyncio
    async def test_one_failed_branch_degrades(self, config):
        ranker = HybridRanker(
            engine(side_effect=RuntimeError("vector store down")),
            engine([keyword_hit("B", 0.9)]),
            config,
        )

        page = await ranker.rank("query", SearchFilter())

        assert [r.member_id for r in page.results] == ["B"]
        assert page.results[0].final_score == pytest.approx(0.9)
        assert page.semantic_ok is False
        assert page.keyword_ok is True

    @pytest.mark.asyncio
    async def test_both_branches_failing_raises(self, config):
        ranker = HybridRanker(
            engine(side_effect=RuntimeError("vector store down")),
            engine(side_effect=RuntimeError("database down")),
            config,
        )

        with pytest.raises(RetrievalTotalFailure) as exc_info:
            await ranker.rank("query", SearchFilter())

        assert exc_info.value.retryable is True
        assert {f.branch for f in exc_info.value.failures} == {"semantic", "keyword"}

    @pytest.mark.asyncio
    async def test_both_branches_empty_is_not_an_error(self, config):
        page = await HybridRanker(engine([]), engine([]), config).rank("query", SearchFilter())
        assert page.results == []
        assert page.total_results == 0

    @pytest.mark.asyncio
    async def test_branch_missing_deadline_is_cancelled(self):
        config = PipelineConfig(search_deadline_seconds=0.05)
        cancelled = asyncio.Event()

        async def slow_search(query_text, search_filter, top_k):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return [semantic_hit("A", 0.9)]

        semantic = MagicMock()
        semantic.search = slow_search
        ranker = HybridRanker(semantic, engine([keyword_hit("B", 0.7)]), config)

        page = await ranker.rank("query", SearchFilter())

        assert [r.member_id for r in page.results] == ["B"]
        assert page.semantic_ok is False
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, config):
        hits = [keyword_hit(f"m{i:02d}", 1.0 - i / 100) for i in range(15)]
        ranker = HybridRanker(engine([]), engine(hits), config)

        first = await ranker.rank("query", SearchFilter(), page=1, page_size=10)
        second = await ranker.rank("query", SearchFilter(), page=2, page_size=10)

        assert first.total_results == second.total_results == 15
        assert len(first.results) == 10
        assert len(second.results) == 5
        assert not {r.member_id for r in first.results} & {r.member_id for r in second.results}

    @pytest.mark.asyncio
    async def test_cancelling_rank_cancels_in_flight_branches(self, config):
        started = asyncio.Event()
        cancelled = []

        def blocking_engine(branch):
            async def search(query_text, search_filter, top_k):
                started.set()
                try:
                    await asyncio.sleep(5)
                except asyncio.CancelledError:
                    cancelled.append(branch)
                    raise
                return []

            fake = MagicMock()
            fake.search = search
            return fake

        ranker = HybridRanker(blocking_engine("semantic"), blocking_engine("keyword"), config)
        task = asyncio.create_task(ranker.rank("query", SearchFilter()))
        await started.wait()
        await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert sorted(cancelled) == ["keyword", "semantic"]
