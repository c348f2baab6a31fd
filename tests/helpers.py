"""Shared fakes and factories for the relay tests."""

import asyncio

from app.models import SourceIssue


class FakeModelClient:
    """Stands in for OllamaClient: yields fixed fragments, then stalls or fails."""

    def __init__(self, fragments=(), error=None, stall=False):
        self.fragments = list(fragments)
        self.error = error
        self.stall = stall
        self.calls = []
        self.closed = False

    async def stream_generate(self, model, prompt):
        self.calls.append((model, prompt))
        try:
            for fragment in self.fragments:
                yield fragment
            if self.stall:
                await asyncio.sleep(3600)
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def make_issue(
    id: int = 1001,
    number: int = 1,
    title: str = "Crash on save",
    body: str = "steps...",
    is_pull_request: bool = False,
) -> SourceIssue:
    return SourceIssue(
        id=id,
        number=number,
        title=title,
        body=body,
        html_url=f"https://github.com/octo/widgets/issues/{number}",
        is_pull_request=is_pull_request,
    )
