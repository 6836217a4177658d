"""Tests for per-caller conversation sessions."""

import asyncio

import pytest

from community_search.conversation.session_store import SessionStore, relative_time
from community_search.models.entities import ConversationTurn, EntitySet, Intent


def turn(clock, query, result_count=0, intent=Intent.FIND_PEERS):
    return ConversationTurn(
        query_text=query,
        timestamp_ms=clock(),
        intent=intent,
        entities=EntitySet(),
        result_count=result_count,
    )


@pytest.fixture
def store(config, clock):
    return SessionStore(config, clock)


class TestSessionStore:
    @pytest.mark.asyncio
    async def test_history_keeps_most_recent_five(self, store, clock):
        for i in range(1, 7):
            await store.record("caller", turn(clock, f"query {i}"))
            clock.advance(minutes=1)

        history = await store.history_for("caller")

        assert [t.query_text for t in history] == [f"query {i}" for i in range(2, 7)]

    @pytest.mark.asyncio
    async def test_unknown_caller_has_no_history(self, store):
        assert await store.history_for("nobody") == []
        assert await store.context_for("nobody") == ""

    @pytest.mark.asyncio
    async def test_callers_are_isolated(self, store, clock):
        await store.record("alice", turn(clock, "1995 batch"))
        await store.record("bob", turn(clock, "web companies"))

        assert [t.query_text for t in await store.history_for("alice")] == ["1995 batch"]
        assert [t.query_text for t in await store.history_for("bob")] == ["web companies"]

    @pytest.mark.asyncio
    async def test_session_expires_after_ttl(self, store, clock):
        await store.record("caller", turn(clock, "old query"))
        clock.advance(minutes=31)

        assert await store.history_for("caller") == []
        assert await store.context_for("caller") == ""

    @pytest.mark.asyncio
    async def test_activity_extends_session(self, store, clock):
        await store.record("caller", turn(clock, "first"))
        clock.advance(minutes=20)
        await store.record("caller", turn(clock, "second"))
        clock.advance(minutes=20)

        assert len(await store.history_for("caller")) == 2

    @pytest.mark.asyncio
    async def test_record_after_expiry_starts_fresh(self, store, clock):
        await store.record("caller", turn(clock, "stale"))
        clock.advance(minutes=45)
        await store.record("caller", turn(clock, "fresh"))

        assert [t.query_text for t in await store.history_for("caller")] == ["fresh"]

    @pytest.mark.asyncio
    async def test_history_is_a_copy(self, store, clock):
        await store.record("caller", turn(clock, "first"))
        history = await store.history_for("caller")
        history.clear()

        assert len(await store.history_for("caller")) == 1

    @pytest.mark.asyncio
    async def test_context_rendering(self, store, clock):
        await store.record("caller", turn(clock, "1995 batch mechanical", result_count=12))
        clock.advance(minutes=5)
        await store.record("caller", turn(clock, "who are they", result_count=12))

        context = await store.context_for("caller")

        assert context.splitlines() == [
            "Previous conversation:",
            '1. "1995 batch mechanical" (5 minutes ago, 12 results)',
            '2. "who are they" (just now, 12 results)',
        ]

    @pytest.mark.asyncio
    async def test_context_can_be_limited_to_recent_turns(self, store, clock):
        for query in ("first", "second", "third"):
            await store.record("caller", turn(clock, query))

        context = await store.context_for("caller", max_turns=2)

        assert context.splitlines()[1:] == [
            '1. "second" (just now, 0 results)',
            '2. "third" (just now, 0 results)',
        ]

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired_sessions(self, store, clock):
        await store.record("idle", turn(clock, "q"))
        clock.advance(minutes=25)
        await store.record("active", turn(clock, "q"))
        clock.advance(minutes=10)

        assert store.active_session_count() == 1
        assert store.sweep() == 1
        assert store.sweep() == 0
        assert [t.query_text for t in await store.history_for("active")] == ["q"]

    @pytest.mark.asyncio
    async def test_concurrent_records_for_one_caller(self, store, clock):
        await asyncio.gather(*(store.record("caller", turn(clock, f"q{i}")) for i in range(20)))
        assert len(await store.history_for("caller")) == 5

    @pytest.mark.asyncio
    async def test_other_callers_are_not_blocked_by_a_held_lock(self, store, clock):
        async with store._caller_lock("alice"):
            await asyncio.wait_for(store.record("bob", turn(clock, "web companies")), timeout=1)
            assert [t.query_text for t in await store.history_for("bob")] == ["web companies"]

    @pytest.mark.asyncio
    async def test_same_caller_waits_for_held_lock(self, store, clock):
        async with store._caller_lock("alice"):
            pending = asyncio.create_task(store.record("alice", turn(clock, "1995 batch")))
            await asyncio.sleep(0.01)
            assert not pending.done()
        await asyncio.wait_for(pending, timeout=1)
        assert len(await store.history_for("alice")) == 1

    @pytest.mark.asyncio
    async def test_reads_for_unknown_callers_allocate_no_locks(self, store, clock):
        for i in range(1000):
            assert await store.context_for(f"ghost-{i}") == ""
            assert await store.history_for(f"ghost-{i}") == []
        clock.advance(minutes=120)

        assert store.sweep() == 0
        assert store.lock_count() == 0

    @pytest.mark.asyncio
    async def test_sweep_releases_locks_of_expired_sessions(self, store, clock):
        await store.record("alice", turn(clock, "q"))
        await store.record("bob", turn(clock, "q"))
        assert store.lock_count() == 2
        clock.advance(minutes=120)
        assert await store.history_for("alice") == []

        assert store.sweep() == 2
        assert store.lock_count() == 0

    @pytest.mark.asyncio
    async def test_lock_held_during_sweep_is_released_by_its_holder(self, store, clock):
        await store.record("alice", turn(clock, "q"))
        clock.advance(minutes=120)

        async with store._caller_lock("alice"):
            assert store.sweep() == 1
            assert store.lock_count() == 1
        assert store.lock_count() == 0

    @pytest.mark.asyncio
    async def test_sweeper_task_can_be_cancelled(self, store):
        task = asyncio.create_task(store.run_sweeper(interval_seconds=0.01))
        await asyncio.sleep(0.03)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.parametrize("elapsed_ms, expected", [
    (0, "just now"),
    (59_000, "just now"),
    (60_000, "1 minute ago"),
    (5 * 60_000, "5 minutes ago"),
    (60 * 60_000, "1 hour ago"),
    (150 * 60_000, "2 hours ago"),
])
def test_relative_time(elapsed_ms, expected):
    assert relative_time(elapsed_ms) == expected
