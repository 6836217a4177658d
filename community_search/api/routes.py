"""API route definitions."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from community_search.config import settings
from community_search.conversation.session_store import SessionStore
from community_search.database.connection import get_db_session
from community_search.models.query_models import QueryRequest, QueryResponse, SessionResponse
from community_search.repositories.member_repo import MemberRepository
from community_search.search.hybrid_ranker import HybridRanker
from community_search.search.keyword_search import KeywordSearchEngine
from community_search.search.query_controller import QueryController
from community_search.search.semantic_search import SemanticSearchEngine
from community_search.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


# Dependency factories
def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


async def get_query_controller(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> QueryController:
    """Create QueryController with per-request dependencies."""
    state = request.app.state
    semantic_engine = SemanticSearchEngine(state.embedding_service, state.vector_db)
    keyword_engine = KeywordSearchEngine(MemberRepository(session))
    ranker = HybridRanker(semantic_engine, keyword_engine, settings.pipeline)
    return QueryController(state.query_understanding, ranker, state.session_store, settings.pipeline)


@router.post("/query", response_model=QueryResponse, status_code=200)
async def query_members(
    payload: QueryRequest,
    controller: QueryController = Depends(get_query_controller)
):
    """
    Answer a free-text question about community members.

    Accepts JSON body with:
    - query: free text, e.g. "1995 batch mechanical in Chennai" (1-500 characters)
    - caller_id: opaque caller key; recent turns are remembered per caller
    - options.max_results: page size, 1-50 (default: 10)
    - options.page: 1-based page number (default: 1)

    Returns the extracted intent and entities, a ranked page of members,
    display text, up to three follow-up suggestions and pagination info.
    """
    return await controller.handle(payload)


@router.get("/sessions/{caller_id}", response_model=SessionResponse)
async def get_session(
    caller_id: str,
    store: SessionStore = Depends(get_session_store)
):
    """Preview the conversation context held for a caller."""
    return SessionResponse(
        caller_id=caller_id,
        context=await store.context_for(caller_id),
        turns=await store.history_for(caller_id),
    )


@router.get("/health")
async def health_check(
    request: Request,
    session: AsyncSession = Depends(get_db_session)
):
    """Health check with database and session store status."""
    health_status = {
        "status": "healthy",
        "service": "Community Search",
        "checks": {
            "database": "unknown",
            "vector_db": type(request.app.state.vector_db).__name__,
            "llm_fallback": "enabled" if request.app.state.llm_enabled else "disabled",
        },
        "active_sessions": request.app.state.session_store.active_session_count(),
    }

    try:
        await session.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["checks"]["database"] = "error"
        logger.warning(f"Health check: database unavailable: {e}", extra={"error": str(e)})

    return health_status
