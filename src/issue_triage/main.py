"""
Issue Triage - Main Application
================================

GitHub issue triage service.

Every issue delivered by the webhook is labeled (reusing labels of a
near-duplicate when the semantic cache hits), linked to similar issues,
summarized and announced in Slack.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services, pipeline and DTOs
- Domain: Entities and prompt builders
- Infrastructure: LLM, Milvus corpus, Redis cache, GitHub and Slack
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from issue_triage.config import settings
from issue_triage.core import ApplicationException

# Infrastructure
from issue_triage.infrastructure.cache import RedisCacheStore
from issue_triage.infrastructure.llm import create_llm_client
from issue_triage.infrastructure.vectorstore import MilvusVectorStore

# Triage module
from issue_triage.triage.application import (
    LabelingService,
    MetadataCache,
    PromptRouter,
    SemanticCacheService,
    SummaryService,
    build_pipeline,
)
from issue_triage.triage.infrastructure import GitHubClient, SlackNotifier
from issue_triage.triage.interfaces import triage_router

# Logging and metrics
from issue_triage.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from issue_triage.shared.infrastructure.grafana import init_grafana_exporter
from issue_triage.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize Grafana exporter
    3. Create LLM client, Milvus corpus, Redis cache, GitHub and Slack clients
    4. Wire services and the triage pipeline into app.state

    SHUTDOWN:
    1. Close every client handle
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Issue Triage Service", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "llm_provider": settings.llm_provider
    })

    if settings.grafana_host and settings.grafana_api_key and settings.grafana_instance_id:
        init_grafana_exporter(
            host=settings.grafana_host,
            api_key=settings.grafana_api_key,
            instance_id=settings.grafana_instance_id
        )
        logger.info("Grafana OTLP exporter initialized")
    else:
        logger.info("Grafana OTLP exporter not configured - metrics will not be exported")

    llm_client = create_llm_client(settings)

    # A failed initialize is retried on first use; lookups degrade to cache misses meanwhile
    vector_store = MilvusVectorStore(config=settings)
    try:
        await vector_store.initialize()
    except ApplicationException as e:
        logger.warning("Vector store not available", extra={"error": e.message})

    cache_store = RedisCacheStore(config=settings)
    if not await cache_store.ping():
        logger.warning("Redis not reachable - metadata will be fetched from GitHub directly")

    github_client = GitHubClient(config=settings)
    notifier = SlackNotifier(config=settings)
    if not notifier.is_configured:
        logger.info("Slack webhook not configured - notifications disabled")

    router = PromptRouter(settings)
    semantic_cache = SemanticCacheService(llm_client, vector_store)
    metadata_cache = MetadataCache(cache_store, github_client, settings)
    labeling_service = LabelingService(semantic_cache, metadata_cache, llm_client, router, settings)
    summary_service = SummaryService(llm_client, router, settings)
    pipeline = build_pipeline(labeling_service, semantic_cache, summary_service, notifier, settings)

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.llm_client = llm_client
    app.state.vector_store = vector_store
    app.state.cache_store = cache_store
    app.state.semantic_cache = semantic_cache
    app.state.pipeline = pipeline

    logger.info("Issue Triage Service started", extra={"stages": pipeline.stage_names})

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Issue Triage Service")

    await notifier.close()
    await github_client.close()
    await cache_store.close()
    await vector_store.close()
    await llm_client.close()

    logger.info("Issue Triage Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Issue Triage API",
    description="""
    ## Semantic-cache backed GitHub issue triage

    **Endpoints:**
    - `POST /webhook` - GitHub `issues` events (opened, reopened, edited)
    - `POST /triage/match` - Read-only semantic cache lookup
    - `GET /health` - Health check

    **Pipeline:** labeling -> similar issue search -> summary -> Slack notification
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(triage_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "llm_client": "openai",
                        "vector_store": "available (42 documents)",
                        "cache_store": "connected",
                        "slack": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    The service reports healthy while degraded: every dependency has a
    fallback path.
    """
    checks = {
        "llm_client": settings.llm_provider,
        "vector_store": "initializing",
        "cache_store": "initializing",
        "slack": "configured" if settings.slack_webhook_url else "not_configured"
    }

    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        try:
            count = await vector_store.get_document_count()
            checks["vector_store"] = f"available ({count} documents)"
        except ApplicationException as e:
            checks["vector_store"] = f"error: {e.message}"

    cache_store = getattr(request.app.state, "cache_store", None)
    if cache_store is not None:
        checks["cache_store"] = "connected" if await cache_store.ping() else "unavailable"

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Issue Triage Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture",
        "docs": "/docs",
        "health": "/health",
        "endpoints": [
            "POST /webhook - GitHub issues webhook",
            "POST /triage/match - Semantic cache lookup"
        ]
    }


# === Development Entry Point ===

def run() -> None:
    import uvicorn

    uvicorn.run(
        "issue_triage.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
