"""Controller for natural language member search."""
import math
from typing import Optional, Tuple

from community_search.config import PipelineConfig
from community_search.conversation.session_store import SessionStore
from community_search.exceptions import QueryValidationError
from community_search.extraction.query_understanding import QueryUnderstanding, is_followup, is_next_page
from community_search.formatting.response_formatter import (
    describe_entities,
    format_response,
    low_confidence_clarification,
)
from community_search.formatting.suggestion_engine import generate_suggestions
from community_search.models.entities import ConversationTurn, ExtractedQuery, Intent
from community_search.models.query_models import (
    MemberResult,
    Pagination,
    QueryRequest,
    QueryResponse,
)
from community_search.search.hybrid_ranker import HybridRanker
from community_search.search.search_filter import SearchFilter
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


class QueryController:
    """Validate, understand, search, format and remember one query."""

    def __init__(
        self,
        understanding: QueryUnderstanding,
        ranker: HybridRanker,
        session_store: SessionStore,
        config: PipelineConfig,
    ):
        self.understanding = understanding
        self.ranker = ranker
        self.session_store = session_store
        self.config = config

    def validate(self, request: QueryRequest) -> Tuple[str, str, int, int]:
        """Return (query, caller_id, page, page_size) or raise QueryValidationError."""
        query = (request.query or "").strip()
        if not query:
            raise QueryValidationError("Query must not be empty", field="query")
        if len(query) > self.config.max_query_length:
            raise QueryValidationError(
                f"Query must be at most {self.config.max_query_length} characters",
                field="query",
            )

        caller_id = (request.caller_id or "").strip()
        if not caller_id:
            raise QueryValidationError("caller_id must not be empty", field="caller_id")

        options = request.options
        page_size = self.config.default_page_size
        page = 1
        if options is not None:
            if options.max_results is not None:
                if not 1 <= options.max_results <= self.config.max_page_size:
                    raise QueryValidationError(
                        f"max_results must be between 1 and {self.config.max_page_size}",
                        field="options.max_results",
                    )
                page_size = options.max_results
            if options.page is not None:
                if options.page < 1:
                    raise QueryValidationError("page must be 1 or greater", field="options.page")
                page = options.page

        return query, caller_id, page, page_size

    def _search_text(self, extracted: ExtractedQuery, previous: Optional[ConversationTurn]) -> str:
        # "who are they" carries no searchable words of its own
        if extracted.intent == Intent.GET_INFO and is_followup(extracted.normalized_query_text):
            if previous is not None and previous.search_text:
                return previous.search_text
            summary = describe_entities(extracted.entities)
            if summary:
                return summary
        return extracted.normalized_query_text

    async def _previous_turn(self, caller_id: str, extracted: ExtractedQuery) -> Optional[ConversationTurn]:
        if extracted.intent != Intent.GET_INFO or not is_followup(extracted.normalized_query_text):
            return None
        history = await self.session_store.history_for(caller_id)
        return history[-1] if history else None

    def _next_page(
        self,
        request: QueryRequest,
        previous: ConversationTurn,
        page: int,
        page_size: int,
    ) -> Tuple[int, int]:
        """A "show more" follow-up continues the previous turn unless the request pins its own paging."""
        options = request.options
        if options is None or options.page is None:
            page = previous.page + 1
        if (options is None or options.max_results is None) and previous.page_size:
            page_size = previous.page_size
        return page, page_size

    async def handle(self, request: QueryRequest) -> QueryResponse:
        query, caller_id, page, page_size = self.validate(request)

        logger.info(
            "Starting member search",
            extra={"caller_id": caller_id, "query": query[:100], "page": page, "page_size": page_size}
        )

        extracted = await self.understanding.understand(query, caller_id)

        if extracted.confidence < self.config.low_confidence_threshold:
            logger.info(
                f"Low confidence ({extracted.confidence:.2f}), asking for clarification",
                extra={"caller_id": caller_id, "confidence": extracted.confidence}
            )
            return QueryResponse(
                intent=extracted.intent,
                secondary_intent=extracted.secondary_intent,
                entities=extracted.entities,
                confidence=extracted.confidence,
                method=extracted.method,
                results=[],
                display_text=low_confidence_clarification(extracted),
                suggestions=generate_suggestions([], extracted, low_confidence=True),
                pagination=Pagination(page=page, total_pages=0, total_results=0),
            )

        previous = await self._previous_turn(caller_id, extracted)
        if previous is not None and is_next_page(extracted.normalized_query_text):
            page, page_size = self._next_page(request, previous, page, page_size)
            logger.info(
                f"Continuing previous search at page {page}",
                extra={"caller_id": caller_id, "page": page, "page_size": page_size}
            )

        search_text = self._search_text(extracted, previous)
        search_filter = SearchFilter.from_entities(extracted.entities)
        ranked_page = await self.ranker.rank(
            search_text,
            search_filter,
            page=page,
            page_size=page_size,
        )

        display_text = format_response(
            ranked_page.results, extracted, ranked_page.total_results, page=page, page_size=page_size
        )
        suggestions = generate_suggestions(ranked_page.results, extracted, total=ranked_page.total_results)

        await self.session_store.record(
            caller_id,
            ConversationTurn(
                query_text=query,
                timestamp_ms=self.session_store.clock(),
                intent=extracted.intent,
                entities=extracted.entities,
                result_count=ranked_page.total_results,
                search_text=search_text,
                page=page,
                page_size=page_size,
            ),
        )

        logger.info(
            f"Search complete: {ranked_page.total_results} results, intent={extracted.intent.value}",
            extra={
                "caller_id": caller_id,
                "intent": extracted.intent.value,
                "method": extracted.method.value,
                "total_results": ranked_page.total_results,
                "semantic_ok": ranked_page.semantic_ok,
                "keyword_ok": ranked_page.keyword_ok,
            }
        )

        return QueryResponse(
            intent=extracted.intent,
            secondary_intent=extracted.secondary_intent,
            entities=extracted.entities,
            confidence=extracted.confidence,
            method=extracted.method,
            results=[MemberResult.from_ranked(result) for result in ranked_page.results],
            display_text=display_text,
            suggestions=suggestions,
            pagination=Pagination(
                page=page,
                total_pages=math.ceil(ranked_page.total_results / page_size),
                total_results=ranked_page.total_results,
            ),
        )
