"""Tests for the provider fallback chain in front of the LLM extractor."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from community_search.config import settings
from community_search.extraction.llm_extractor import LLMEntityExtractor
from community_search.services.llm_client import (
    CompletionUnavailable,
    FallbackCompletionClient,
    build_completion_client,
)


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def provider(name, *outcomes):
    fake = MagicMock()
    fake.name = name
    fake.complete = AsyncMock(side_effect=list(outcomes))
    return fake


@pytest.fixture
def monotonic():
    return FakeMonotonic()


class TestFallbackCompletionClient:
    @pytest.mark.asyncio
    async def test_primary_answer_is_used(self, monotonic):
        primary, secondary = provider("primary", '{"a": 1}'), provider("secondary")
        client = FallbackCompletionClient([primary, secondary], clock=monotonic)

        assert await client.complete("prompt") == '{"a": 1}'
        secondary.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_moves_to_next_provider(self, monotonic):
        primary = provider("primary", ConnectionError("refused"))
        secondary = provider("secondary", '{"b": 2}')
        client = FallbackCompletionClient([primary, secondary], clock=monotonic)

        assert await client.complete("prompt") == '{"b": 2}'
        secondary.complete.assert_awaited_once_with("prompt")
        assert client.state_of(primary).failures == 1
        assert client.state_of(secondary).failures == 0

    @pytest.mark.asyncio
    async def test_all_failing_raises_with_each_error(self, monotonic):
        client = FallbackCompletionClient(
            [provider("primary", ConnectionError("refused")), provider("secondary", RuntimeError("500"))],
            clock=monotonic,
        )

        with pytest.raises(CompletionUnavailable) as exc_info:
            await client.complete("prompt")

        assert exc_info.value.errors == {"primary": "refused", "secondary": "500"}

    @pytest.mark.asyncio
    async def test_repeated_failures_skip_provider_until_reset(self, monotonic):
        primary = provider("primary", *[ConnectionError("refused")] * 2, "recovered")
        secondary = provider("secondary", *["ok"] * 5)
        client = FallbackCompletionClient(
            [primary, secondary], failure_threshold=2, reset_seconds=60, clock=monotonic
        )

        await client.complete("p")
        await client.complete("p")
        assert client.state_of(primary).opened_at == monotonic.now

        monotonic.now += 30
        assert await client.complete("p") == "ok"
        assert primary.complete.await_count == 2

        monotonic.now += 31
        assert await client.complete("p") == "recovered"
        assert primary.complete.await_count == 3
        assert client.state_of(primary).failures == 0

    @pytest.mark.asyncio
    async def test_failed_retry_after_reset_reopens_immediately(self, monotonic):
        primary = provider("primary", *[ConnectionError("refused")] * 3)
        secondary = provider("secondary", *["ok"] * 3)
        client = FallbackCompletionClient(
            [primary, secondary], failure_threshold=2, reset_seconds=60, clock=monotonic
        )
        await client.complete("p")
        await client.complete("p")

        monotonic.now += 61
        await client.complete("p")

        assert client.state_of(primary).opened_at == monotonic.now
        assert primary.complete.await_count == 3

    @pytest.mark.asyncio
    async def test_success_clears_failure_count(self, monotonic):
        primary = provider("primary", ConnectionError("refused"), "ok", ConnectionError("refused"))
        secondary = provider("secondary", "fallback", "fallback")
        client = FallbackCompletionClient([primary, secondary], failure_threshold=2, clock=monotonic)

        await client.complete("p")
        await client.complete("p")
        await client.complete("p")

        assert client.state_of(primary).failures == 1
        assert client.state_of(primary).opened_at is None

    @pytest.mark.asyncio
    async def test_cancellation_is_not_a_failure(self, monotonic):
        started = asyncio.Event()

        async def hang(prompt):
            started.set()
            await asyncio.sleep(5)

        primary = MagicMock()
        primary.name = "primary"
        primary.complete = hang
        secondary = provider("secondary")
        client = FallbackCompletionClient([primary, secondary], clock=monotonic)

        task = asyncio.create_task(client.complete("p"))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert client.state_of(primary).failures == 0
        secondary.complete.assert_not_awaited()

    def test_requires_a_provider(self):
        with pytest.raises(ValueError):
            FallbackCompletionClient([])

    @pytest.mark.asyncio
    async def test_extractor_degrades_when_every_provider_fails(self, config, monotonic):
        client = FallbackCompletionClient(
            [provider("primary", ConnectionError("refused")), provider("secondary", ConnectionError("refused"))],
            clock=monotonic,
        )

        assert await LLMEntityExtractor(client, config).extract("web guys in madras") is None


class TestBuildCompletionClient:
    def test_primary_only_by_default(self, config):
        with patch.object(settings, "llm_fallback_host", None), patch.object(settings, "llm_fallback_model", None):
            client = build_completion_client(config)

        assert [p.host for p in client.providers] == [settings.ollama_host]
        assert client.failure_threshold == config.llm_circuit_failure_threshold

    def test_fallback_endpoint_is_chained(self, config):
        with patch.object(settings, "llm_fallback_host", "http://backup:11434"), \
                patch.object(settings, "llm_fallback_model", "qwen2.5"):
            client = build_completion_client(config)

        assert [p.host for p in client.providers] == [settings.ollama_host, "http://backup:11434"]
        assert client.providers[1].model == "qwen2.5"
