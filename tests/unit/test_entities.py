"""
Unit tests for domain entities, DTO conversion and logging redaction
"""

import logging

from issue_triage.shared.infrastructure.logging import CustomJsonFormatter
from issue_triage.triage.application.dto import GitHubIssuePayload, GitHubRepositoryPayload
from issue_triage.triage.domain import (
    Issue,
    LabelPromptBuilder,
    SemanticCheckResult,
    SemanticCheckStatus,
    build_input_text,
)


# ============================================================================
# Issue identity
# ============================================================================


def test_key_prefers_global_id():
    assert Issue(id=99, number=3, title="t").key == "99"


def test_key_falls_back_to_number():
    assert Issue(number=3, title="t").key == "3"


def test_key_parsed_from_html_url():
    assert Issue(title="t", html_url="https://github.com/a/b/issues/314").key == "314"


def test_key_digest_is_stable():
    first = Issue(title="Crash", repository_url="https://api.github.com/repos/a/b")
    second = Issue(title="Crash", repository_url="https://api.github.com/repos/a/b")

    assert first.key == second.key
    assert len(first.key) == 16
    assert first.key != Issue(title="Other", repository_url="https://api.github.com/repos/a/b").key


def test_build_input_text_treats_none_as_empty():
    assert build_input_text(None, None) == "Title: \nBody: "
    assert Issue(title="A", body="B").input_text == "Title: A\nBody: B"


def test_lookup_failed_is_not_a_hit():
    result = SemanticCheckResult.lookup_failed("timeout")

    assert result.status == SemanticCheckStatus.LOOKUP_FAILED
    assert not result.is_hit


# ============================================================================
# Prompt builder
# ============================================================================


def test_label_prompt_ends_with_instruction():
    prompt = LabelPromptBuilder.build_prompt(Issue(title="T", body="B"), [], {}, ["bug", "feature"])

    assert "Available labels: ['bug', 'feature']" in prompt
    assert "Example issues" not in prompt
    assert prompt.endswith("Return only a list of relevant labels as a comma-separated string.")


# ============================================================================
# DTOs
# ============================================================================


def test_issue_payload_to_domain():
    payload = GitHubIssuePayload(
        id=1,
        number=2,
        title=None,
        body=None,
        labels=[{"name": "bug"}, {"name": None}],
        html_url="https://github.com/a/b/issues/2",
    )
    repository = GitHubRepositoryPayload(url="https://api.github.com/repos/a/b")

    issue = payload.to_domain(repository)

    assert issue.title == ""
    assert issue.body == ""
    assert issue.labels == ["bug"]
    assert issue.repository_url == "https://api.github.com/repos/a/b"


# ============================================================================
# Logging
# ============================================================================


def test_formatter_redacts_secrets_but_keeps_token_counts():
    formatter = CustomJsonFormatter(environment="test")
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
    log_record = {"api_key": "sk-123", "github_token": "ghp", "prompt_tokens": 12}

    formatter.add_fields(log_record, record, {})

    assert log_record["api_key"] == "***REDACTED***"
    assert log_record["github_token"] == "***REDACTED***"
    assert log_record["prompt_tokens"] == 12
    assert log_record["environment"] == "test"
