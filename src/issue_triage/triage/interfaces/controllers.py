"""
Triage Controllers (API Routes)
================================

FastAPI routes for the GitHub webhook and the semantic cache lookup.

Controllers delegate to application services held in app.state.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from issue_triage.config import TRIAGE_ACTIONS, settings
from issue_triage.core import ValidationException
from issue_triage.shared.infrastructure.logging import get_logger
from issue_triage.triage.application import (
    GitHubWebhookPayload,
    MatchRequest,
    MatchResponse,
    SemanticCacheService,
    SimilarIssueInfo,
    TriagePipeline,
    WebhookResponse,
    extract_labels,
)
from issue_triage.triage.domain import build_input_text

logger = get_logger(__name__)
router = APIRouter(tags=["Issue Triage"])


# ========== Example payloads for Swagger ==========

WEBHOOK_RESPONSE_EXAMPLE = {
    "status": "processed",
    "labels": ["bug", "redis-cluster"],
    "similar_issues": [
        {
            "issue_id": "1001",
            "title": "Redis cluster timeout after failover",
            "url": "https://github.com/acme/widgets/issues/1001",
            "labels": ["bug", "redis-cluster"],
            "similarity": 0.94,
            "score": 94
        }
    ],
    "cache_outcome": "hit",
    "summary": "Cluster clients time out after a primary failover",
    "notified": True,
    "errors": []
}

MATCH_REQUEST_EXAMPLE = {
    "title": "Redis cluster timeout",
    "body": "Connection times out after failover",
    "threshold": 0.92
}


# ========== Dependencies ==========

def get_pipeline(request: Request) -> TriagePipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Triage pipeline not initialized")
    return pipeline


def get_semantic_cache(request: Request) -> SemanticCacheService:
    cache = getattr(request.app.state, "semantic_cache", None)
    if cache is None:
        raise HTTPException(status_code=503, detail="Semantic cache not initialized")
    return cache


# ========== Route Handlers ==========

@router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Receive a GitHub issues event",
    description="""
    Entry point for GitHub `issues` webhooks.

    Actions `opened`, `reopened` and `edited` run the triage pipeline:
    labeling (semantic cache first), similar issue search, summary and
    Slack notification. Other actions and other event types are ignored.
    """,
    responses={
        200: {
            "description": "Event processed or ignored",
            "content": {"application/json": {"example": WEBHOOK_RESPONSE_EXAMPLE}}
        },
        503: {"description": "Pipeline not initialized"}
    }
)
async def handle_webhook(
    request: Request,
    payload: GitHubWebhookPayload,
    x_github_event: Optional[str] = Header(default=None),
    pipeline: TriagePipeline = Depends(get_pipeline)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    if x_github_event is not None and x_github_event != "issues":
        logger.info(
            "Ignoring non-issue event",
            extra={"correlation_id": correlation_id, "event": x_github_event}
        )
        return WebhookResponse(status="ignored")

    if payload.action not in TRIAGE_ACTIONS or payload.issue is None:
        logger.info(
            "Ignoring issue action",
            extra={"correlation_id": correlation_id, "action": payload.action}
        )
        return WebhookResponse(status="ignored")

    issue = payload.issue.to_domain(payload.repository)
    logger.info(
        "Triaging issue",
        extra={
            "correlation_id": correlation_id,
            "action": payload.action,
            "issue_id": issue.key,
            "issue_title": issue.title
        }
    )

    context = await pipeline.process(issue)

    return WebhookResponse(
        status="processed",
        labels=context.labels,
        similar_issues=[SimilarIssueInfo.from_domain(s) for s in context.similar_issues],
        cache_outcome=context.cache_status.value if context.cache_status else None,
        summary=context.summary,
        notified=context.notified,
        errors=context.errors
    )


@router.post(
    "/triage/match",
    response_model=MatchResponse,
    summary="Look up a high-confidence match without storing anything",
    description="""
    Embeds `Title: ...\\nBody: ...` and returns the closest stored issue when
    its similarity reaches the threshold. The corpus is never modified.
    """,
    responses={
        200: {
            "description": "Lookup completed",
            "content": {"application/json": {"example": {
                "status": "hit",
                "threshold": 0.92,
                "match": WEBHOOK_RESPONSE_EXAMPLE["similar_issues"][0],
                "labels": ["bug", "redis-cluster"]
            }}}
        }
    }
)
async def match_issue(
    payload: MatchRequest,
    cache: SemanticCacheService = Depends(get_semantic_cache)
):
    if not payload.title.strip():
        raise ValidationException("Issue title must not be blank", {"field": "title"})

    threshold = payload.threshold if payload.threshold is not None else settings.semantic_cache_threshold
    result = await cache.check(build_input_text(payload.title, payload.body), threshold)

    if not result.is_hit:
        return MatchResponse(status=result.status.value, threshold=threshold)

    return MatchResponse(
        status=result.status.value,
        threshold=threshold,
        match=SimilarIssueInfo.from_domain(result.match),
        labels=extract_labels(result.match)
    )


# Export router
triage_router = router
