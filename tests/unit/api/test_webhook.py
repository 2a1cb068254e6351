import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from issue_triage.main import app
from issue_triage.triage.domain import (
    Issue,
    SemanticCheckResult,
    SemanticCheckStatus,
    SimilarIssue,
    TriageContext,
)


def _payload(action="opened"):
    return {
        "action": action,
        "issue": {
            "id": 3001,
            "number": 17,
            "title": "Timeout in cluster mode",
            "body": "Jedis hangs after failover",
            "html_url": "https://github.com/redis/jedis/issues/17",
            "repository_url": "https://api.github.com/repos/redis/jedis",
            "labels": [{"name": "triage"}],
            "state": "open",
            "locked": False,
        },
        "repository": {"id": 1, "full_name": "redis/jedis"},
        "sender": {"login": "octocat", "id": 2},
    }


def _similar():
    return SimilarIssue(
        issue_id="1001",
        issue=Issue(id=1001, title="Cluster timeout", labels=["bug"], html_url="https://github.com/redis/jedis/issues/1"),
        distance=0.03,
        similarity=0.97,
        score=97,
    )


@pytest.fixture
def pipeline():
    p = AsyncMock()
    p.process.return_value = TriageContext(
        labels=["bug", "redis-cluster"],
        similar_issues=[_similar()],
        summary="Hangs after failover",
        cache_status=SemanticCheckStatus.HIT,
        notified=True,
    )
    return p


@pytest.fixture
def semantic_cache():
    cache = AsyncMock()
    cache.check.return_value = SemanticCheckResult.hit(_similar())
    return cache


@pytest.fixture
def client(pipeline, semantic_cache):
    """App without lifespan; services injected through app.state."""
    app.state.pipeline = pipeline
    app.state.semantic_cache = semantic_cache
    yield TestClient(app, raise_server_exceptions=False)
    del app.state.pipeline
    del app.state.semantic_cache


def test_opened_issue_runs_pipeline(client, pipeline):
    response = client.post("/webhook", json=_payload(), headers={"X-GitHub-Event": "issues"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processed"
    assert body["labels"] == ["bug", "redis-cluster"]
    assert body["cache_outcome"] == "hit"
    assert body["similar_issues"][0]["issue_id"] == "1001"
    assert body["similar_issues"][0]["score"] == 97

    issue = pipeline.process.call_args.args[0]
    assert issue.key == "3001"
    assert issue.labels == ["triage"]
    assert issue.repository_url == "https://api.github.com/repos/redis/jedis"


@pytest.mark.parametrize("action", ["reopened", "edited"])
def test_other_triage_actions_run_pipeline(client, pipeline, action):
    response = client.post("/webhook", json=_payload(action))

    assert response.json()["status"] == "processed"
    pipeline.process.assert_awaited_once()


def test_closed_issue_is_ignored(client, pipeline):
    response = client.post("/webhook", json=_payload("closed"))

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    pipeline.process.assert_not_called()


def test_non_issue_event_is_ignored(client, pipeline):
    response = client.post("/webhook", json={"zen": "Keep it simple", "action": "ping"}, headers={"X-GitHub-Event": "ping"})

    assert response.json()["status"] == "ignored"
    pipeline.process.assert_not_called()


def test_correlation_id_uses_delivery_id(client):
    response = client.post("/webhook", json=_payload("closed"), headers={"X-GitHub-Delivery": "delivery-123"})

    assert response.headers["X-Correlation-ID"] == "delivery-123"


def test_unhandled_error_returns_json_500(client, pipeline):
    pipeline.process.side_effect = RuntimeError("boom")

    response = client.post("/webhook", json=_payload())

    assert response.status_code == 500
    body = response.json()
    assert body["detail"] == "Internal server error"
    assert "correlation_id" in body
    assert body["debug_info"] is None


def test_match_endpoint_returns_hit(client, semantic_cache):
    response = client.post("/triage/match", json={"title": "Cluster timeout", "body": "hangs", "threshold": 0.9})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "hit"
    assert body["threshold"] == 0.9
    assert body["labels"] == ["bug"]
    semantic_cache.check.assert_awaited_once_with("Title: Cluster timeout\nBody: hangs", 0.9)


def test_match_endpoint_miss(client, semantic_cache):
    semantic_cache.check.return_value = SemanticCheckResult.miss()

    response = client.post("/triage/match", json={"title": "Something new"})

    body = response.json()
    assert body["status"] == "miss"
    assert body["match"] is None
    assert body["threshold"] == 0.92


def test_match_rejects_empty_title(client):
    response = client.post("/triage/match", json={"title": ""})

    assert response.status_code == 422


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["service"] == "Issue Triage Service"


def test_match_rejects_blank_title(client, semantic_cache):
    response = client.post("/triage/match", json={"title": "   "})

    assert response.status_code == 422
    body = response.json()
    assert body["detail"] == "Issue title must not be blank"
    assert body["debug_info"] == {"field": "title"}
    semantic_cache.check.assert_not_called()


def test_health_reports_dependencies(client, vector_store, cache_store):
    app.state.vector_store = vector_store
    app.state.cache_store = cache_store
    try:
        response = client.get("/health")
    finally:
        del app.state.vector_store
        del app.state.cache_store

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["vector_store"] == "available (0 documents)"
    assert body["checks"]["cache_store"] == "connected"


def test_debug_setting_exposes_error_details(client, pipeline, test_settings):
    pipeline.process.side_effect = RuntimeError("boom")
    app.state.settings = test_settings.model_copy(update={"debug": True})
    try:
        response = client.post("/webhook", json=_payload())
    finally:
        del app.state.settings

    assert response.status_code == 500
    assert response.json()["debug_info"] == "boom"
