"""
Unit tests for SummaryService, PromptRouter and summary cleaning
"""

import logging

import pytest
from unittest.mock import AsyncMock

from issue_triage.config import TaskType
from issue_triage.core import LLMException
from issue_triage.infrastructure.llm import ChatCompletionResult
from issue_triage.triage.application.services import (
    NO_SUMMARY,
    SUMMARY_UNAVAILABLE,
    PromptRouter,
    SummaryService,
    clean_summary,
    estimate_tokens,
)
from issue_triage.triage.domain import Issue, SimilarIssue, TaskContext


def _completion(content):
    return ChatCompletionResult(content=content, model="m", prompt_tokens=1, completion_tokens=1, latency_ms=1)


def _similar(n):
    return [
        SimilarIssue(
            issue_id=str(i),
            issue=Issue(id=i, title=f"Similar issue {i}"),
            distance=0.1,
            similarity=0.9,
            score=90,
        )
        for i in range(1, n + 1)
    ]


# ============================================================================
# PromptRouter
# ============================================================================


@pytest.fixture
def router(test_settings):
    return PromptRouter(test_settings)


def test_labeling_routes_to_labeling_model(router, test_settings):
    route = router.route_for(TaskContext(task_type=TaskType.LABELING))

    assert route.model == test_settings.labeling_model
    assert route.cost_weight == 1.0


def test_long_summary_routes_to_long_context_model(router, test_settings):
    route = router.route_for(TaskContext(task_type=TaskType.SUMMARIZATION, token_count=8001))

    assert route.model == test_settings.summary_long_model
    assert route.provider == "anthropic"
    assert route.cost_weight == 0.8


def test_short_summary_routes_to_fast_model(router, test_settings):
    route = router.route_for(TaskContext(task_type=TaskType.SUMMARIZATION, token_count=8000))

    assert route.model == test_settings.summary_model
    assert route.cost_weight == 0.2


def test_cost_sensitive_task_routes_to_cheap_model(router, test_settings):
    route = router.route_for(TaskContext(task_type=TaskType.UNKNOWN, cost_sensitivity=0.1))

    assert route.model == test_settings.cheap_model
    assert route.cost_weight == 0.1


def test_unknown_task_routes_to_default_model(router, test_settings):
    route = router.route_for(TaskContext(task_type=TaskType.UNKNOWN))

    assert route.model == test_settings.default_model


def test_routing_log_carries_task_context(router, caplog):
    with caplog.at_level(logging.DEBUG, logger="issue_triage.triage.application.services"):
        router.route_for(TaskContext(task_type=TaskType.LABELING, urgency="high", cost_sensitivity=0.7))

    record = next(r for r in caplog.records if r.getMessage() == "Routed LLM task")
    assert record.urgency == "high"
    assert record.cost_sensitivity == 0.7


def test_estimate_tokens():
    assert estimate_tokens("a" * 40) == 10
    assert estimate_tokens(None) == 0


# ============================================================================
# Summary cleaning
# ============================================================================


@pytest.mark.parametrize("raw, expected", [
    ("Summary: Clients time out after failover.", "Clients time out after failover"),
    ("Here's a summary: Pool leaks connections", "Pool leaks connections"),
    ('"Quoted summary text"', "Quoted summary text"),
    ("", NO_SUMMARY),
    (None, NO_SUMMARY),
    ("Summary: .", NO_SUMMARY),
])
def test_clean_summary(raw, expected):
    assert clean_summary(raw) == expected


def test_clean_summary_caps_length():
    cleaned = clean_summary("word " * 200)

    assert len(cleaned) == 500
    assert cleaned.endswith("...")


# ============================================================================
# SummaryService
# ============================================================================


@pytest.fixture
def llm():
    client = AsyncMock()
    client.chat_completion.return_value = _completion("Summary: Jedis hangs in cluster mode.")
    return client


@pytest.fixture
def summaries(llm, test_settings):
    return SummaryService(llm, PromptRouter(test_settings), test_settings)


@pytest.mark.asyncio
async def test_contextual_summary_mentions_three_similar_titles(summaries, llm):
    issue = Issue(id=1, title="Hang", body="Jedis hangs")

    summary = await summaries.generate_summary_with_context(issue, ["bug"], _similar(5))

    prompt = llm.chat_completion.call_args.kwargs["messages"][0]["content"]
    assert summary == "Jedis hangs in cluster mode"
    assert "- Similar issue 3" in prompt
    assert "Similar issue 4" not in prompt
    assert "Generated Labels: bug" in prompt


@pytest.mark.asyncio
async def test_contextual_failure_falls_back_to_basic_summary(summaries, llm):
    llm.chat_completion.side_effect = [LLMException("overloaded"), _completion("Basic summary")]

    summary = await summaries.generate_summary_with_context(Issue(id=1, title="Hang"), [], _similar(1))

    assert summary == "Basic summary"
    fallback_prompt = llm.chat_completion.call_args.kwargs["messages"][0]["content"]
    assert "Similar Issues Found" not in fallback_prompt
    assert "Generated Labels: none" in fallback_prompt


@pytest.mark.asyncio
async def test_both_failures_yield_placeholder(summaries, llm):
    llm.chat_completion.side_effect = LLMException("down")

    summary = await summaries.generate_summary_with_context(Issue(id=1, title="Hang"), ["bug"], [])

    assert summary == SUMMARY_UNAVAILABLE
