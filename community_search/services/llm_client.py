"""Completion clients for the LLM fallback, backed by OLLAMA."""
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from community_search.config import settings
from community_search.utils.logging import get_logger

logger = get_logger(__name__)

try:
    import ollama
    OLLAMA_CLIENT_AVAILABLE = True
except ImportError:
    OLLAMA_CLIENT_AVAILABLE = False
    logger.warning("OLLAMA Python client not available, LLM fallback disabled")


class CompletionClient(ABC):
    """Anything that turns a prompt into raw model text."""

    name: str = "completion"

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        pass


class CompletionUnavailable(RuntimeError):
    """Every configured completion provider failed or is cooling down."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        detail = "; ".join(f"{name}: {error}" for name, error in errors.items()) or "no provider available"
        super().__init__(f"All completion providers failed ({detail})")


class OllamaCompletionClient(CompletionClient):
    """Calls /api/generate through the OLLAMA Python client, asking for JSON output."""

    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.1,
        api_key: Optional[str] = None,
    ):
        if not OLLAMA_CLIENT_AVAILABLE:
            raise RuntimeError("OLLAMA Python client not installed")
        self.host = host or settings.ollama_host
        self.model = model or settings.llm_model
        self.temperature = temperature
        self.name = f"ollama:{self.model}@{self.host}"
        api_key = api_key or settings.ollama_api_key
        headers = None
        if api_key:
            headers = {"Authorization": f"Bearer {api_key}"}
        self._client = ollama.AsyncClient(host=self.host, headers=headers)

    async def complete(self, prompt: str) -> str:
        response = await self._client.generate(
            model=self.model,
            prompt=prompt,
            format="json",
            options={
                "temperature": self.temperature,
                "top_p": 0.9,
            },
        )
        text = response["response"]
        logger.debug(
            f"LLM completion received ({len(text or '')} chars)",
            extra={"model": self.model, "response_length": len(text or "")}
        )
        return text or ""


@dataclass
class ProviderState:
    failures: int = 0
    opened_at: Optional[float] = None


class FallbackCompletionClient(CompletionClient):
    """
    Tries each provider in order until one answers.

    A provider that fails failure_threshold times in a row is skipped for
    reset_seconds; the first call after that window tries it again. A success
    clears its failure count. Cancellation is never counted as a failure.
    """

    name = "fallback"

    def __init__(
        self,
        providers: List[CompletionClient],
        failure_threshold: int = 5,
        reset_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if not providers:
            raise ValueError("At least one completion provider is required")
        self.providers = providers
        self.failure_threshold = failure_threshold
        self.reset_seconds = reset_seconds
        self.clock = clock or time.monotonic
        self._states: Dict[int, ProviderState] = {id(p): ProviderState() for p in providers}

    def state_of(self, provider: CompletionClient) -> ProviderState:
        return self._states[id(provider)]

    def _is_open(self, provider: CompletionClient) -> bool:
        state = self.state_of(provider)
        if state.opened_at is None:
            return False
        if self.clock() - state.opened_at >= self.reset_seconds:
            logger.info(f"Retrying completion provider {provider.name} after cool-down")
            state.opened_at = None
            state.failures = self.failure_threshold - 1
            return False
        return True

    def _record_failure(self, provider: CompletionClient) -> None:
        state = self.state_of(provider)
        state.failures += 1
        if state.failures >= self.failure_threshold and state.opened_at is None:
            state.opened_at = self.clock()
            logger.warning(
                f"Completion provider {provider.name} disabled for {self.reset_seconds}s "
                f"after {state.failures} consecutive failures",
                extra={"provider": provider.name, "failures": state.failures}
            )

    async def complete(self, prompt: str) -> str:
        errors: Dict[str, str] = {}
        for provider in self.providers:
            if self._is_open(provider):
                logger.debug(f"Skipping completion provider {provider.name} (cooling down)")
                continue
            try:
                text = await provider.complete(prompt)
            except Exception as e:
                self._record_failure(provider)
                errors[provider.name] = str(e)
                logger.warning(
                    f"Completion provider {provider.name} failed: {e}",
                    extra={"provider": provider.name, "error": str(e)}
                )
                continue
            self.state_of(provider).failures = 0
            return text
        raise CompletionUnavailable(errors)


def build_completion_client(pipeline) -> CompletionClient:
    """Primary OLLAMA endpoint, chained with the optional fallback endpoint."""
    providers: List[CompletionClient] = [OllamaCompletionClient(temperature=pipeline.llm_temperature)]
    if settings.llm_fallback_host or settings.llm_fallback_model:
        providers.append(OllamaCompletionClient(
            host=settings.llm_fallback_host,
            model=settings.llm_fallback_model,
            temperature=pipeline.llm_temperature,
            api_key=settings.llm_fallback_api_key,
        ))
    logger.info(
        f"Completion providers: {', '.join(p.name for p in providers)}",
        extra={"providers": [p.name for p in providers]}
    )
    return FallbackCompletionClient(
        providers,
        failure_threshold=pipeline.llm_circuit_failure_threshold,
        reset_seconds=pipeline.llm_circuit_reset_seconds,
    )
