"""Explicit wiring of clients, ledger and scheduler, built once at startup."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx
from fastapi import HTTPException, Request, status

from app.config import Settings
from app.core.errors import ConfigurationError
from app.core.github_client import GitHubClient
from app.core.issue_mirror import IssueMirror
from app.core.issue_scheduler import SyncScheduler
from app.core.issue_sync import IssueSyncEngine
from app.core.jira_client import JiraClient
from app.core.ledger import InMemoryLedger
from app.core.logging_utils import redact_token, sanitize_url_for_logging
from app.core.summarizer import OllamaClient, Summarizer, validate_prompt_template


logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """Everything a running relay shares, passed explicitly instead of globals."""
    settings: Settings
    github: GitHubClient
    jira: JiraClient
    ollama: OllamaClient
    summarizer: Summarizer
    ledger: InMemoryLedger
    mirror: IssueMirror
    engine: IssueSyncEngine
    scheduler: SyncScheduler

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.github.aclose()
        await self.jira.aclose()
        await self.ollama.aclose()


def check_required_settings(settings: Settings) -> None:
    """Raise ConfigurationError naming every missing required setting."""
    required = ["gh_owner", "gh_repo", "jira_base_url", "jira_username", "jira_api_token"]
    if settings.link_back_enabled:
        required.append("gh_token")

    missing: List[str] = [name for name in required if not getattr(settings, name)]
    if missing:
        raise ConfigurationError(
            "Missing required settings: " + ", ".join(name.upper() for name in missing)
        )


def check_endpoint_url(name: str, value: str) -> None:
    """Raise ConfigurationError unless value is an absolute http(s) URL with a host."""
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Invalid {name.upper()} '{value}': {e}") from e

    if url.scheme not in ("http", "https"):
        raise ConfigurationError(
            f"{name.upper()} must start with http:// or https://, got '{value}'"
        )
    if not url.host:
        raise ConfigurationError(f"{name.upper()} '{value}' has no hostname")


def build_context(
    settings: Settings,
    *,
    github_transport: Optional[httpx.AsyncBaseTransport] = None,
    jira_transport: Optional[httpx.AsyncBaseTransport] = None,
    ollama_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SyncContext:
    """
    Build the relay from settings.

    Raises:
        ConfigurationError: If settings are missing or invalid, including an
            unusable endpoint URL or prompt template.
    """
    check_required_settings(settings)
    check_endpoint_url("jira_base_url", settings.jira_base_url)
    check_endpoint_url("github_api_url", settings.github_api_url)
    if settings.summary_prompt_template:
        validate_prompt_template(settings.summary_prompt_template)

    if not settings.gh_token:
        logger.warning("GH_TOKEN is not set, GitHub requests are unauthenticated")
    else:
        logger.info(f"Using GitHub token {redact_token(settings.gh_token)}")

    ollama = OllamaClient(
        settings.ollama_host,
        timeout=settings.http_timeout_seconds,
        transport=ollama_transport,
    )
    summarizer = Summarizer(
        ollama,
        model=settings.ollama_model,
        default_prompt_template=settings.summary_prompt_template,
    )
    github = GitHubClient(
        settings.gh_token,
        api_url=settings.github_api_url,
        timeout=settings.http_timeout_seconds,
        transport=github_transport,
    )
    jira = JiraClient(
        settings.jira_base_url,
        settings.jira_username,
        settings.jira_api_token,
        timeout=settings.http_timeout_seconds,
        transport=jira_transport,
    )
    ledger = InMemoryLedger()
    mirror = IssueMirror(
        jira,
        github,
        owner=settings.gh_owner,
        repo=settings.gh_repo,
        project_key=settings.jira_project_key,
        issue_type=settings.jira_issue_type,
    )
    engine = IssueSyncEngine(
        github,
        summarizer,
        mirror,
        ledger,
        owner=settings.gh_owner,
        repo=settings.gh_repo,
        summary_timeout=settings.summary_timeout_seconds,
        issue_timeout=settings.issue_timeout_seconds,
        link_back_enabled=settings.link_back_enabled,
        stop_at_first_pull_request=settings.stop_at_first_pull_request,
        max_pages=settings.github_max_pages,
    )
    scheduler = SyncScheduler(engine, interval_seconds=settings.poll_interval_seconds)

    logger.info(
        f"Relay configured: {settings.gh_owner}/{settings.gh_repo} -> "
        f"{sanitize_url_for_logging(settings.jira_base_url)} project {settings.jira_project_key}"
    )
    return SyncContext(
        settings=settings,
        github=github,
        jira=jira,
        ollama=ollama,
        summarizer=summarizer,
        ledger=ledger,
        mirror=mirror,
        engine=engine,
        scheduler=scheduler,
    )


def get_context(request: Request) -> SyncContext:
    """FastAPI dependency returning the context stored at startup."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Relay is not initialized",
        )
    return context
