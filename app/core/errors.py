"""Exception types shared by the sync pipeline."""

from typing import Optional


class ConfigurationError(Exception):
    """Missing or invalid configuration. Fatal at startup, never retried."""


class PromptTemplateError(ConfigurationError):
    """Prompt template does not have exactly one substitution field."""


class SummaryError(Exception):
    """Summary generation failed for a single issue."""


class SummaryTimeoutError(SummaryError):
    """Summary generation hit its deadline before the stream completed."""


class ModelStreamError(Exception):
    """The model endpoint reported an error or returned a bad response."""


class TrackerClientError(Exception):
    """Non-success response from an issue tracker REST API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GitHubClientError(TrackerClientError):
    """Non-success response from the GitHub REST API."""


class JiraClientError(TrackerClientError):
    """Non-success response from the Jira REST API."""


class LinkBackError(Exception):
    """The Jira issue exists but the GitHub issue could not be updated with its link."""

    def __init__(self, issue_number: int, key: str, cause: Exception):
        super().__init__(
            f"Failed to link GitHub issue #{issue_number} to Jira issue {key}: {cause}"
        )
        self.issue_number = issue_number
        self.key = key
