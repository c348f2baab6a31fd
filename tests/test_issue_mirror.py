"""Unit tests for Jira mirror creation and GitHub link-back."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.core.errors import GitHubClientError, JiraClientError, LinkBackError
from app.core.github_client import GitHubClient
from app.core.issue_mirror import (
    JIRA_LINK_MARKER,
    IssueMirror,
    append_link_section,
    extract_link_section,
)
from app.core.jira_client import JiraClient
from tests.helpers import make_issue


# -------------------------------------------------------------------------
# Helper Function Tests
# -------------------------------------------------------------------------


def test_extract_link_section_no_section():
    main, section = extract_link_section("Steps to reproduce")
    assert main == "Steps to reproduce"
    assert section is None


def test_extract_link_section_empty_body():
    assert extract_link_section(None) == ("", None)
    assert extract_link_section("") == ("", None)


def test_append_link_section():
    body = append_link_section("Steps to reproduce", "GT-7", "https://jira.example.com/browse/GT-7")

    assert body.startswith("Steps to reproduce\n\n---\n\n")
    assert JIRA_LINK_MARKER in body
    assert "[GT-7](https://jira.example.com/browse/GT-7)" in body


def test_append_link_section_to_empty_body():
    body = append_link_section("", "GT-7", "https://jira.example.com/browse/GT-7")
    assert body.startswith(JIRA_LINK_MARKER)


def test_append_link_section_replaces_previous_section():
    first = append_link_section("Steps", "GT-1", "https://jira.example.com/browse/GT-1")
    second = append_link_section(first, "GT-2", "https://jira.example.com/browse/GT-2")

    assert second.count(JIRA_LINK_MARKER) == 1
    assert "GT-1" not in second
    assert "GT-2" in second
    main, _ = extract_link_section(second)
    assert main == "Steps"


# -------------------------------------------------------------------------
# IssueMirror Tests
# -------------------------------------------------------------------------


@pytest.fixture
def jira():
    client = MagicMock(spec=JiraClient)
    client.create_issue = AsyncMock(return_value="GT-42")
    client.browse_url.side_effect = lambda key: f"https://jira.example.com/browse/{key}"
    return client


@pytest.fixture
def github():
    client = MagicMock(spec=GitHubClient)
    client.update_issue_body = AsyncMock(return_value={})
    return client


@pytest.fixture
def mirror(jira, github):
    return IssueMirror(
        jira,
        github,
        owner="octo",
        repo="widgets",
        project_key="GT",
        issue_type="Task",
    )


def test_build_payload_shape(mirror):
    issue = make_issue(number=42, title="Crash on save", body="steps...")

    payload = mirror.build_payload(issue, "S").to_json()

    fields = payload["fields"]
    assert fields["summary"] == "GitHub Issue #42: Crash on save"
    assert issue.html_url in fields["description"]
    assert "S" in fields["description"]
    assert fields["description"] == (
        "Imported from GitHub: https://github.com/octo/widgets/issues/42"
        "\n\nSummarized Description:\nS"
    )
    assert fields["project"] == {"key": "GT"}
    assert fields["issuetype"] == {"name": "Task"}


@pytest.mark.asyncio
async def test_create_mirror_sends_payload_and_returns_key(mirror, jira):
    issue = make_issue(number=42, title="Crash on save")

    key = await mirror.create_mirror(issue, "generated summary")

    assert key == "GT-42"
    sent = jira.create_issue.await_args.args[0]
    assert sent["fields"]["summary"] == "GitHub Issue #42: Crash on save"
    assert "generated summary" in sent["fields"]["description"]


@pytest.mark.asyncio
async def test_create_mirror_propagates_jira_errors(mirror, jira):
    jira.create_issue.side_effect = JiraClientError("Jira API responded with status 500", 500)

    with pytest.raises(JiraClientError):
        await mirror.create_mirror(make_issue(), "summary")


@pytest.mark.asyncio
async def test_link_back_appends_section(mirror, github):
    issue = make_issue(number=5, body="Original body")

    await mirror.link_back(issue, "GT-42")

    owner, repo, number, body = github.update_issue_body.await_args.args
    assert (owner, repo, number) == ("octo", "widgets", 5)
    assert body.startswith("Original body")
    assert "GT-42" in body
    assert "https://jira.example.com/browse/GT-42" in body


@pytest.mark.asyncio
async def test_link_back_failure_raises_link_back_error(mirror, github):
    github.update_issue_body.side_effect = GitHubClientError("forbidden", 403)

    with pytest.raises(LinkBackError) as exc_info:
        await mirror.link_back(make_issue(number=5), "GT-42")

    assert exc_info.value.issue_number == 5
    assert exc_info.value.key == "GT-42"
    assert isinstance(exc_info.value.__cause__, GitHubClientError)
