"""Create Jira mirrors of GitHub issues and link them back."""

import logging
from typing import Optional, Tuple

from app.core.errors import LinkBackError
from app.core.github_client import GitHubClient
from app.core.jira_client import JiraClient
from app.models import SourceIssue, TargetIssuePayload


logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Constants
# -------------------------------------------------------------------------

JIRA_LINK_MARKER = "<!-- jira-link -->"
JIRA_LINK_SEPARATOR = "\n\n---\n\n"


# -------------------------------------------------------------------------
# Helper Functions
# -------------------------------------------------------------------------

def build_summary_line(issue: SourceIssue) -> str:
    return f"GitHub Issue #{issue.number}: {issue.title}"


def build_description(issue: SourceIssue, summary: str) -> str:
    return f"Imported from GitHub: {issue.html_url}\n\nSummarized Description:\n{summary}"


def extract_link_section(body: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    Split an issue body into its own content and the Jira link section.

    Returns:
        Tuple of (main_content, link_section) where link_section is None
        if the body has never been linked.
    """
    if not body:
        return "", None

    if JIRA_LINK_MARKER not in body:
        return body, None

    main, section = body.split(JIRA_LINK_MARKER, 1)
    main = main.rstrip()
    if main.endswith("---"):
        main = main[:-3].rstrip()
    return main, JIRA_LINK_MARKER + section


def build_link_section(key: str, browse_url: str) -> str:
    return "\n".join([
        JIRA_LINK_MARKER,
        f"**Jira Issue**: [{key}]({browse_url})",
    ])


def append_link_section(body: Optional[str], key: str, browse_url: str) -> str:
    """Append the link section, replacing one left by an earlier run."""
    main, _ = extract_link_section(body)
    section = build_link_section(key, browse_url)
    if not main:
        return section
    return f"{main}{JIRA_LINK_SEPARATOR}{section}"


class IssueMirror:
    """Creates the Jira counterpart of a GitHub issue."""

    def __init__(
        self,
        jira: JiraClient,
        github: GitHubClient,
        *,
        owner: str,
        repo: str,
        project_key: str,
        issue_type: str = "Task",
    ):
        self.jira = jira
        self.github = github
        self.owner = owner
        self.repo = repo
        self.project_key = project_key
        self.issue_type = issue_type

    def build_payload(self, issue: SourceIssue, summary: str) -> TargetIssuePayload:
        return TargetIssuePayload(
            project_key=self.project_key,
            issue_type=self.issue_type,
            summary=build_summary_line(issue),
            description=build_description(issue, summary),
        )

    async def create_mirror(self, issue: SourceIssue, summary: str) -> str:
        """
        Create the Jira issue and return its key.

        Raises:
            JiraClientError: If Jira rejects the request.
            httpx.HTTPError: On transport failures.
        """
        payload = self.build_payload(issue, summary)
        key = await self.jira.create_issue(payload.to_json())
        logger.info(f"Jira issue {key} created successfully for GitHub issue #{issue.number}")
        return key

    async def link_back(self, issue: SourceIssue, key: str) -> None:
        """
        Append a link to the Jira issue to the GitHub issue body.

        Raises:
            LinkBackError: If the GitHub update fails for any reason. The
                Jira issue is left in place.
        """
        browse_url = self.jira.browse_url(key)
        body = append_link_section(issue.body, key, browse_url)
        try:
            await self.github.update_issue_body(self.owner, self.repo, issue.number, body)
        except Exception as e:
            raise LinkBackError(issue.number, key, e) from e
        logger.info(f"Linked GitHub issue #{issue.number} to Jira issue {key}")
