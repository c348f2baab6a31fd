"""
Issue summaries from a local Ollama model.

The model response is consumed as a stream. A producer task reads the
NDJSON response and turns it into StreamEvents on a single queue; the
caller awaits those events under its own deadline. The summary is only
returned once the stream reports completion; errors and timeouts discard
whatever text had arrived.
"""

import asyncio
import json
import logging
import string
from contextlib import aclosing
from typing import AsyncIterator, List, Optional

import httpx

from app.core.errors import (
    ConfigurationError,
    ModelStreamError,
    PromptTemplateError,
    SummaryError,
    SummaryTimeoutError,
)
from app.core.logging_utils import sanitize_for_logging, sanitize_url_for_logging
from app.models import StreamEvent, SummaryRequest


logger = logging.getLogger(__name__)


DEFAULT_MODEL = "mistral"
DEFAULT_OLLAMA_HOST = "http://127.0.0.1:11434"
DEFAULT_OLLAMA_PORT = 11434

DEFAULT_PROMPT_TEMPLATE = """Please analyze this GitHub issue description and create a clear, structured summary for Jira:

{content}

Please format the response as follows:
1. Issue Overview (1-2 sentences)
2. Key Details (bullet points)
3. Technical Requirements (if any)
4. Dependencies and Impact (if mentioned)
"""

CHANGES_PROMPT_TEMPLATE = """Please analyze these changes and create a clear, structured summary suitable for release notes:

{content}

Please format the response as follows:
1. Overview (1-2 sentences)
2. Key Changes (bullet points)
3. Technical Details (if any)
4. Impact and Dependencies (if mentioned)
"""

# Field names that bind to the issue content when the template is rendered
_CONTENT_FIELDS = {"", "0", "content"}


def validate_prompt_template(template: str) -> None:
    """
    Ensure the template has exactly one substitution field.

    Accepted fields are "{}", "{0}" and "{content}". Literal braces must be
    doubled ("{{" and "}}").

    Raises:
        PromptTemplateError: If the template is malformed or has zero or
            several fields.
    """
    try:
        fields = [
            name for _, name, _, _ in string.Formatter().parse(template)
            if name is not None
        ]
    except ValueError as e:
        raise PromptTemplateError(f"Malformed prompt template: {e}") from e

    if len(fields) != 1:
        raise PromptTemplateError(
            f"Prompt template must contain exactly one substitution field, found {len(fields)}"
        )
    if fields[0] not in _CONTENT_FIELDS:
        raise PromptTemplateError(
            f"Unsupported prompt template field '{{{fields[0]}}}', use '{{content}}'"
        )


def normalize_ollama_host(host: Optional[str]) -> str:
    """
    Resolve an OLLAMA_HOST style value into a base URL.

    A bare "host" or "host:port" gets an http scheme and the default port.

    Raises:
        ConfigurationError: If the value cannot be used as an http(s) URL.
    """
    value = (host or "").strip() or DEFAULT_OLLAMA_HOST
    if "://" not in value:
        value = f"http://{value}"

    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Invalid Ollama host '{host}': {e}") from e

    if url.scheme not in ("http", "https"):
        raise ConfigurationError(f"Unsupported Ollama host scheme '{url.scheme}'")
    if not url.host:
        raise ConfigurationError(f"Ollama host '{host}' has no hostname")

    if url.port is None and url.scheme == "http":
        url = url.copy_with(port=DEFAULT_OLLAMA_PORT)
    return str(url).rstrip("/")


class OllamaClient:
    """Minimal async client for Ollama's streaming /api/generate endpoint."""

    def __init__(
        self,
        host: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = normalize_ollama_host(host)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )
        logger.info(f"Ollama client initialized for {sanitize_url_for_logging(self.base_url)}")

    async def stream_generate(self, model: str, prompt: str) -> AsyncIterator[str]:
        """
        Yield response fragments in arrival order until the model reports done.

        Raises:
            ModelStreamError: On a non-2xx response, a malformed line, or an
                error line in the stream.
        """
        payload = {"model": model, "prompt": prompt, "stream": True}
        async with self._client.stream("POST", "/api/generate", json=payload) as response:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise ModelStreamError(
                    f"Ollama responded with status {response.status_code}: "
                    f"{sanitize_for_logging(body)}"
                )

            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise ModelStreamError(
                        f"Malformed stream line from Ollama: {sanitize_for_logging(line, 200)}"
                    ) from e

                if data.get("error"):
                    raise ModelStreamError(str(data["error"]))

                text = data.get("response") or ""
                if text:
                    yield text
                if data.get("done"):
                    return

        # Connection closed without a done marker
        raise ModelStreamError("Ollama stream ended before completion")

    async def aclose(self) -> None:
        await self._client.aclose()


class Summarizer:
    """Generate structured summaries of issue text with a language model."""

    def __init__(
        self,
        client,
        model: str = "",
        default_prompt_template: str = "",
    ):
        """
        Args:
            client: Object exposing ``stream_generate(model, prompt)`` as an
                async iterator of text fragments (normally OllamaClient).
            model: Model name; empty means DEFAULT_MODEL.
            default_prompt_template: Template used when a call passes none.

        Raises:
            PromptTemplateError: If the default template is invalid.
        """
        if not model:
            model = DEFAULT_MODEL
            logger.info(f"No model specified, using default model: {model}")
        self.client = client
        self.model = model
        self.default_prompt_template = default_prompt_template or DEFAULT_PROMPT_TEMPLATE
        validate_prompt_template(self.default_prompt_template)

    async def generate(
        self,
        content: str,
        prompt_template: str = "",
        timeout: Optional[float] = None,
    ) -> str:
        """
        Summarize ``content`` and return the full generated text.

        Args:
            content: Raw issue text, may be empty.
            prompt_template: Template with one substitution field; empty
                selects the default template.
            timeout: Deadline in seconds for the whole generation, or None.

        Raises:
            PromptTemplateError: If the template is invalid (no model call is made).
            SummaryTimeoutError: If the deadline fires before the stream completes.
            SummaryError: If the model stream reports an error.
        """
        template = prompt_template or self.default_prompt_template
        validate_prompt_template(template)

        request = SummaryRequest(prompt_template=template, content=content)
        logger.debug(f"Starting summary generation with model {self.model}")
        return await self._generate(request.render(), timeout)

    async def summarize_changes(self, changes: str, timeout: Optional[float] = None) -> str:
        """Summarize a change list using the release-notes prompt."""
        return await self.generate(changes, CHANGES_PROMPT_TEMPLATE, timeout=timeout)

    async def _generate(self, prompt: str, timeout: Optional[float]) -> str:
        queue: asyncio.Queue = asyncio.Queue()
        producer = asyncio.create_task(self._produce(prompt, queue))
        try:
            text = await asyncio.wait_for(self._collect(queue), timeout=timeout)
            # wait_for may hand back a finished result even though we were cancelled
            current = asyncio.current_task()
            if current is not None and getattr(current, "cancelling", lambda: 0)():
                raise asyncio.CancelledError()
            return text
        except asyncio.TimeoutError as e:
            logger.debug("Summary deadline exceeded, discarding partial output")
            raise SummaryTimeoutError(
                f"Summary generation did not complete within {timeout}s"
            ) from e
        finally:
            if not producer.done():
                producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                pass

    async def _produce(self, prompt: str, queue: asyncio.Queue) -> None:
        """Push the model stream onto the queue, ending with one terminal event."""
        try:
            async with aclosing(self.client.stream_generate(self.model, prompt)) as stream:
                async for text in stream:
                    await queue.put(StreamEvent.fragment(text))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Model stream failed: {e}")
            await queue.put(StreamEvent.failure(e))
        else:
            await queue.put(StreamEvent.end())

    @staticmethod
    async def _collect(queue: asyncio.Queue) -> str:
        fragments: List[str] = []
        while True:
            event = await queue.get()
            if event.kind == StreamEvent.FRAGMENT:
                fragments.append(event.text)
            elif event.kind == StreamEvent.ERROR:
                raise SummaryError(f"Failed to generate summary: {event.error}") from event.error
            else:
                return "".join(fragments)
