import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.errors import GitHubClientError
from app.core.logging_utils import sanitize_for_logging
from app.models import SourceIssue


logger = logging.getLogger(__name__)


class GitHubClient:
    """Wrapper for the GitHub REST API calls the relay needs."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.api_url = api_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def list_open_issues(
        self,
        owner: str,
        repo: str,
        *,
        per_page: int = 100,
        max_pages: int = 10,
    ) -> List[SourceIssue]:
        """
        List open issues of a repository, oldest first.

        GitHub's issues endpoint also returns pull requests; they are kept
        and flagged via ``SourceIssue.is_pull_request``.

        Raises:
            GitHubClientError: On a non-2xx response.
            httpx.HTTPError: On transport failures.
        """
        issues: List[SourceIssue] = []
        for page in range(1, max_pages + 1):
            response = await self._client.get(
                f"/repos/{owner}/{repo}/issues",
                params={
                    "state": "open",
                    "sort": "created",
                    "direction": "asc",
                    "per_page": per_page,
                    "page": page,
                },
            )
            items = self._json_or_raise(response, f"list issues for {owner}/{repo}")
            if not isinstance(items, list):
                raise GitHubClientError(
                    f"Unexpected issues response for {owner}/{repo}",
                    status_code=response.status_code,
                )

            issues.extend(SourceIssue.from_api(item) for item in items)
            if len(items) < per_page:
                break
        else:
            logger.warning(
                f"Stopped listing issues for {owner}/{repo} after {max_pages} pages"
            )

        return issues

    async def update_issue_body(self, owner: str, repo: str, number: int, body: str) -> Dict[str, Any]:
        """Replace the body of an issue."""
        response = await self._client.patch(
            f"/repos/{owner}/{repo}/issues/{number}",
            json={"body": body},
        )
        return self._json_or_raise(response, f"update issue #{number}")

    @staticmethod
    def _json_or_raise(response: httpx.Response, action: str) -> Any:
        if not response.is_success:
            raise GitHubClientError(
                f"Failed to {action}: GitHub responded with status {response.status_code}: "
                f"{sanitize_for_logging(response.text)}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()
