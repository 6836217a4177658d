"""FastAPI application bootstrap."""
import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from community_search.config import settings
from community_search.api.routes import router
from community_search.conversation.session_store import SessionStore
from community_search.database.connection import init_db, close_db
from community_search.exceptions import QueryValidationError, RetrievalTotalFailure
from community_search.extraction.intent_classifier import IntentClassifier
from community_search.extraction.llm_extractor import LLMEntityExtractor
from community_search.extraction.query_understanding import QueryUnderstanding
from community_search.extraction.regex_extractor import RegexEntityExtractor
from community_search.services.embedding_cache import EmbeddingCache
from community_search.services.embedding_service import EmbeddingService
from community_search.services.llm_client import build_completion_client
from community_search.services.vector_db_service import get_vector_db_service
from community_search.utils.logging import setup_logging, get_logger

# Initialize logging
setup_logging()
logger = get_logger(__name__)

# Initialize Sentry if DSN provided
if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        environment="production",
    )
    logger.info("Sentry initialized")


def build_llm_extractor(pipeline):
    try:
        client = build_completion_client(pipeline)
    except RuntimeError as e:
        logger.warning(f"LLM fallback disabled: {e}", extra={"error": str(e)})
        return None
    return LLMEntityExtractor(client, pipeline)


# Startup/shutdown lifecycle
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Community Search application")
    pipeline = settings.pipeline

    try:
        await init_db()

        vector_db = await get_vector_db_service()
        logger.info("Vector database initialized")

        session_store = SessionStore(pipeline)
        llm_extractor = build_llm_extractor(pipeline)

        app.state.vector_db = vector_db
        app.state.session_store = session_store
        app.state.llm_enabled = llm_extractor is not None
        app.state.embedding_service = EmbeddingService(
            pipeline,
            cache=EmbeddingCache(
                max_size=pipeline.embedding_cache_size,
                ttl_seconds=pipeline.embedding_cache_ttl_seconds,
            ),
        )
        app.state.query_understanding = QueryUnderstanding(
            pipeline,
            classifier=IntentClassifier(pipeline),
            regex_extractor=RegexEntityExtractor(pipeline),
            llm_extractor=llm_extractor,
            context_provider=session_store,
        )

        sweeper = asyncio.create_task(session_store.run_sweeper())
        logger.info("Application startup complete")

    except Exception as e:
        logger.error(f"Failed to start application: {e}", extra={"error": str(e)})
        raise

    yield

    logger.info("Shutting down Community Search application")
    sweeper.cancel()
    await asyncio.gather(sweeper, return_exceptions=True)
    await close_db()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Community Search API",
    description="Natural language search over community member profiles",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QueryValidationError)
async def query_validation_exception_handler(request: Request, exc: QueryValidationError):
    """Reject malformed queries before any work is done."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation error",
            "code": "VALIDATION_ERROR",
            "message": exc.message,
            "field": exc.field,
        }
    )


# Request validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": exc.errors()
        }
    )


@app.exception_handler(RetrievalTotalFailure)
async def retrieval_failure_handler(request: Request, exc: RetrievalTotalFailure):
    """Both search branches failed; the caller may retry."""
    logger.error(
        f"Search unavailable: {exc}",
        extra={"path": request.url.path, "branches": [f.branch for f in exc.failures]}
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "Search unavailable",
            "code": "SEARCH_UNAVAILABLE",
            "message": "Search is temporarily unavailable, please try again",
            "retryable": exc.retryable,
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(
        f"Unhandled exception: {exc}",
        extra={
            "error": str(exc),
            "path": request.url.path,
            "method": request.method
        },
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred"
        }
    )


# Include routers
app.include_router(router, prefix="/api/v1", tags=["Search"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Community Search",
        "version": "1.0.0",
        "status": "running"
    }
