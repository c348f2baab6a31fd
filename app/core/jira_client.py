import logging
from typing import Any, Dict, Optional

import httpx

from app.core.errors import JiraClientError
from app.core.logging_utils import sanitize_for_logging


logger = logging.getLogger(__name__)


ISSUE_CREATE_PATH = "/rest/api/2/issue"


class JiraClient:
    """Wrapper for the Jira REST API (issue creation only)."""

    def __init__(
        self,
        base_url: str,
        username: str,
        api_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(username, api_token),
            headers={
                "Accept": "application/json",
                "User-Agent": "jira-client/1.0",
            },
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def create_issue(self, payload: Dict[str, Any]) -> str:
        """
        Create an issue and return its key.

        Raises:
            JiraClientError: On a non-2xx response, or a 2xx without a key.
            httpx.HTTPError: On transport failures (propagated unchanged).
        """
        response = await self._client.post(ISSUE_CREATE_PATH, json=payload)

        if not response.is_success:
            logger.debug(f"Jira response body: {sanitize_for_logging(response.text)}")
            raise JiraClientError(
                f"Jira API responded with status {response.status_code}: "
                f"{sanitize_for_logging(response.text)}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        key = data.get("key") if isinstance(data, dict) else None
        if not key:
            raise JiraClientError(
                "Jira API response did not include an issue key",
                status_code=response.status_code,
                body=response.text,
            )
        return key

    def browse_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"

    async def aclose(self) -> None:
        await self._client.aclose()
