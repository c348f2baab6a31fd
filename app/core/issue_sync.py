"""Poll cycle: mirror new GitHub issues into Jira."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

import httpx

from app.core.errors import (
    ConfigurationError,
    GitHubClientError,
    JiraClientError,
    LinkBackError,
    SummaryError,
    SummaryTimeoutError,
)
from app.core.github_client import GitHubClient
from app.core.issue_mirror import IssueMirror
from app.core.ledger import InMemoryLedger
from app.core.logging_utils import sanitize_for_logging
from app.core.summarizer import Summarizer
from app.models import CycleStats, SourceIssue


logger = logging.getLogger(__name__)


class IssueSyncEngine:
    """Runs poll cycles for one GitHub repository and one Jira project."""

    def __init__(
        self,
        github: GitHubClient,
        summarizer: Summarizer,
        mirror: IssueMirror,
        ledger: InMemoryLedger,
        *,
        owner: str,
        repo: str,
        summary_timeout: float = 30.0,
        issue_timeout: float = 60.0,
        prompt_template: str = "",
        link_back_enabled: bool = True,
        stop_at_first_pull_request: bool = False,
        max_pages: int = 10,
    ):
        if summary_timeout >= issue_timeout:
            raise ConfigurationError(
                f"Summary timeout ({summary_timeout}s) must be shorter than "
                f"the per-issue timeout ({issue_timeout}s)"
            )

        self.github = github
        self.summarizer = summarizer
        self.mirror = mirror
        self.ledger = ledger
        self.owner = owner
        self.repo = repo
        self.summary_timeout = summary_timeout
        self.issue_timeout = issue_timeout
        self.prompt_template = prompt_template
        self.link_back_enabled = link_back_enabled
        self.stop_at_first_pull_request = stop_at_first_pull_request
        self.max_pages = max_pages
        self.last_stats: Optional[CycleStats] = None

    async def poll_once(self) -> CycleStats:
        """
        Run one poll cycle.

        Per-issue failures are logged and recorded in the returned stats;
        only a failed issue listing ends the cycle early.

        Raises:
            ConfigurationError: If the summary prompt template is invalid.
        """
        stats = CycleStats()
        logger.info(f"Polling open GitHub issues for {self.owner}/{self.repo}")

        try:
            issues = await self.github.list_open_issues(
                self.owner, self.repo, max_pages=self.max_pages
            )
        except (GitHubClientError, httpx.HTTPError) as e:
            logger.error(f"Error fetching GitHub issues: {e}")
            stats.fetch_failed = True
            stats.record_error(None, "fetch", str(e))
            return self._finish(stats)

        for issue in issues:
            if issue.is_pull_request:
                stats.pull_requests_skipped += 1
                if self.stop_at_first_pull_request:
                    logger.info(
                        f"Stopping scan at pull request #{issue.number} "
                        f"(stop_at_first_pull_request is enabled)"
                    )
                    break
                continue

            stats.issues_seen += 1
            # Checked before summarizing; mirrored issues never reach the model
            if self.ledger.has(issue.id):
                logger.debug(f"Skipping GitHub issue #{issue.number}: already mirrored")
                stats.issues_already_processed += 1
                continue

            try:
                await asyncio.wait_for(self._sync_issue(issue, stats), timeout=self.issue_timeout)
            except asyncio.TimeoutError:
                self._record_issue_timeout(issue, stats)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error(
                    f"Unexpected error mirroring GitHub issue #{issue.number}: {e}",
                    exc_info=True
                )
                stats.issues_failed += 1
                stats.record_error(issue.number, "unexpected", str(e))

        return self._finish(stats)

    async def _sync_issue(self, issue: SourceIssue, stats: CycleStats) -> None:
        """Summarize, create and link a single issue."""
        try:
            summary = await self.summarizer.generate(
                issue.body,
                self.prompt_template,
                timeout=self.summary_timeout,
            )
        except SummaryError as e:
            stage = "summary_timeout" if isinstance(e, SummaryTimeoutError) else "summary"
            logger.error(f"Failed to generate summary for GitHub issue #{issue.number}: {e}")
            stats.issues_failed += 1
            stats.record_error(issue.number, stage, str(e))
            return

        logger.info(
            f"New GitHub issue detected: #{issue.number} - "
            f"{sanitize_for_logging(issue.title, 200)}"
        )

        try:
            key = await self.mirror.create_mirror(issue, summary)
        except (JiraClientError, httpx.HTTPError) as e:
            logger.error(f"Failed to create Jira issue for GitHub issue #{issue.number}: {e}")
            stats.issues_failed += 1
            stats.record_error(issue.number, "create", str(e))
            return

        # Marked before link-back so a failed link never causes a duplicate mirror
        self.ledger.mark_processed(issue.id)
        stats.issues_created += 1

        if not self.link_back_enabled:
            return

        try:
            await self.mirror.link_back(issue, key)
        except LinkBackError as e:
            logger.error(f"{e} (Jira issue kept, GitHub issue left unlinked)")
            stats.links_failed += 1
            stats.record_error(issue.number, "link_back", str(e))

    def _record_issue_timeout(self, issue: SourceIssue, stats: CycleStats) -> None:
        if self.ledger.has(issue.id):
            # Creation finished, the link-back ran out of time
            logger.error(
                f"Timed out linking GitHub issue #{issue.number} after {self.issue_timeout}s"
            )
            stats.links_failed += 1
            stats.record_error(issue.number, "link_back", "timed out")
        else:
            logger.error(
                f"Timed out mirroring GitHub issue #{issue.number} after {self.issue_timeout}s"
            )
            stats.issues_failed += 1
            stats.record_error(issue.number, "timeout", "timed out")

    def _finish(self, stats: CycleStats) -> CycleStats:
        stats.completed_at = datetime.utcnow()
        self.last_stats = stats
        logger.info(
            f"Poll cycle completed: {stats.issues_created} created, "
            f"{stats.issues_already_processed} already mirrored, "
            f"{stats.issues_failed} failed, {stats.links_failed} unlinked"
        )
        return stats
