"""
Unit tests for TriagePipeline

Tests cover:
- Stage order and shared context
- A failing stage does not stop later stages
- build_pipeline wiring with in-memory collaborators
"""

import pytest
from unittest.mock import AsyncMock

from issue_triage.triage.application.metadata_cache import MetadataCache
from issue_triage.triage.application.pipeline import (
    TriagePipeline,
    TriageStage,
    build_pipeline,
)
from issue_triage.triage.application.semantic_cache import SemanticCacheService
from issue_triage.triage.application.services import LabelingService, PromptRouter, SummaryService
from issue_triage.triage.domain import Issue, SemanticCheckStatus, TriageContext

from tests.conftest import FakeGitHubClient


class RecordingStage(TriageStage):
    def __init__(self, name, calls, fail=False):
        self.name = name
        self._calls = calls
        self._fail = fail

    async def run(self, issue: Issue, context: TriageContext) -> None:
        self._calls.append(self.name)
        if self._fail:
            raise RuntimeError(f"{self.name} exploded")
        context.labels.append(self.name)


@pytest.mark.asyncio
async def test_stages_run_in_order_with_shared_context():
    calls = []
    pipeline = TriagePipeline([RecordingStage(n, calls) for n in ("a", "b", "c")])

    context = await pipeline.process(Issue(id=1, title="t"))

    assert calls == ["a", "b", "c"]
    assert context.labels == ["a", "b", "c"]
    assert context.errors == []


@pytest.mark.asyncio
async def test_failing_stage_does_not_stop_pipeline():
    calls = []
    pipeline = TriagePipeline([
        RecordingStage("labeling", calls),
        RecordingStage("similarity_search", calls, fail=True),
        RecordingStage("summary", calls),
    ])

    context = await pipeline.process(Issue(id=1, title="t"))

    assert calls == ["labeling", "similarity_search", "summary"]
    assert context.errors == ["similarity_search: similarity_search exploded"]
    assert context.labels == ["labeling", "summary"]


@pytest.mark.asyncio
async def test_each_run_gets_a_fresh_context():
    pipeline = TriagePipeline([RecordingStage("a", [])])

    first = await pipeline.process(Issue(id=1, title="t"))
    second = await pipeline.process(Issue(id=2, title="u"))

    assert first is not second
    assert second.labels == ["a"]


# ============================================================================
# Full wiring
# ============================================================================


@pytest.fixture
def notifier():
    n = AsyncMock()
    n.send_notification.return_value = True
    return n


@pytest.fixture
def pipeline(mock_llm, vector_store, cache_store, notifier, test_settings):
    semantic_cache = SemanticCacheService(mock_llm, vector_store)
    metadata = MetadataCache(cache_store, FakeGitHubClient(), test_settings)
    router = PromptRouter(test_settings)
    return build_pipeline(
        LabelingService(semantic_cache, metadata, mock_llm, router, test_settings),
        semantic_cache,
        SummaryService(mock_llm, router, test_settings),
        notifier,
        test_settings,
    )


def test_build_pipeline_stage_order(pipeline):
    assert pipeline.stage_names == ["labeling", "similarity_search", "summary", "notification"]


@pytest.mark.asyncio
async def test_end_to_end_with_in_memory_stores(pipeline, vector_store, notifier):
    first = Issue(id=11, title="Pool exhausted under load", body="JedisPool runs out of connections")
    second = Issue(id=12, title="Pool exhausted under load", body="JedisPool runs out of connections")

    ctx_first = await pipeline.process(first)
    ctx_second = await pipeline.process(second)

    assert ctx_first.cache_status == SemanticCheckStatus.MISS
    assert ctx_first.labels == ["bug", "performance"]
    assert ctx_first.similar_issues == []

    assert ctx_second.cache_status == SemanticCheckStatus.HIT
    assert ctx_second.labels == ["bug", "performance"]
    assert [s.issue_id for s in ctx_second.similar_issues] == ["11"]
    assert ctx_second.summary == "Mock summary of the reported issue"
    assert ctx_second.notified is True

    assert sorted(vector_store.stored_ids()) == ["11", "12"]
    args = notifier.send_notification.call_args.args
    assert args[0] == second
    assert args[1] == ["bug", "performance"]


@pytest.mark.asyncio
async def test_notification_failure_is_recorded(pipeline, notifier):
    notifier.send_notification.side_effect = RuntimeError("slack down")

    context = await pipeline.process(Issue(id=21, title="Crash", body="segfault"))

    assert context.labels == ["bug", "performance"]
    assert context.notified is False
    assert context.errors == ["notification: slack down"]
