import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.context import build_context


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        gh_owner="octo",
        gh_repo="widgets",
        gh_token="ghp_testtoken1234",
        jira_base_url="https://jira.example.com",
        jira_username="bot",
        jira_api_token="jira-token",
        summary_prompt_template="",
        poll_interval_seconds=3600,
    )


@pytest.fixture()
async def context(test_settings):
    """Relay context whose GitHub endpoint returns no issues."""
    def github_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    def unused_handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"Unexpected request {request.method} {request.url}")

    ctx = build_context(
        test_settings,
        github_transport=httpx.MockTransport(github_handler),
        jira_transport=httpx.MockTransport(unused_handler),
        ollama_transport=httpx.MockTransport(unused_handler),
    )
    try:
        yield ctx
    finally:
        await ctx.aclose()


@pytest.fixture()
async def app(context):
    """FastAPI app with the relay context installed without running the lifespan."""
    from app.main import app as fastapi_app

    fastapi_app.state.context = context
    try:
        yield fastapi_app
    finally:
        fastapi_app.state.context = None


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
