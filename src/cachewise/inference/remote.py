"""Network invocation adapter — forwards the request to an equivalent remote service.

Wire contract:

- ``POST {url}`` with the request fields as JSON returns ``{"response": text}``,
  optionally with a ``"usage"`` object.
- ``POST {stream_url}`` returns NDJSON lines ``{"response": chunk}``. A clean end
  is marked by a final ``{"usage": {...}}`` line; a stream that stops without it
  is incomplete. ``{"error": ..., "type": kind}`` reports a failure mid-stream.

Connection errors, timeouts, 429 and 5xx are retried with bounded exponential
backoff. Other 4xx and malformed bodies fail immediately. Once a stream has
started delivering chunks it is never retried; a read timeout from then on
surfaces as ``InvocationTimeout`` carrying the text received so far.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence, TypeVar, Union

import httpx

from cachewise.accounting.pricing import ModelPricing
from cachewise.accounting.usage import estimate_usage, normalize_usage
from cachewise.exceptions import (
    InvocationTimeout,
    InvocationTransportFailure,
    NonRetryableError,
    RetryableError,
)
from cachewise.inference.protocols import InvocationOptions
from cachewise.inference.retry import with_retries
from cachewise.inference.streaming import ChunkStream, StreamEvent
from cachewise.models import InvocationResult, MessageBlock, ToolInvocationRequest, UsageEnvelope
from cachewise.tokenizer import TokenCounter

log = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteAdapter:
    """Invokes a remote cachewise-compatible service over HTTP.

    Args:
        url: Request/response endpoint.
        stream_url: Streaming endpoint; defaults to ``{url}/stream``.
        max_attempts: Total attempts per call, including the first.
        backoff_base_seconds: Wait before the second attempt; doubles each retry.
        backoff_max_seconds: Upper bound on a single wait.
        jitter_factor: Random extra wait, as a fraction of the base wait.
        timeout: Per-attempt HTTP timeout.
        client: Shared ``httpx.AsyncClient``. When omitted the adapter creates
            and owns one.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        url: str,
        *,
        stream_url: Optional[str] = None,
        max_attempts: int = 3,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 8.0,
        jitter_factor: float = 0.5,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        counter: Optional[TokenCounter] = None,
        pricing: Optional[ModelPricing] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._url = url
        self._stream_url = stream_url or url.rstrip("/") + "/stream"
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base_seconds
        self._backoff_max = backoff_max_seconds
        self._jitter_factor = jitter_factor
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._counter = counter or TokenCounter()
        self._pricing = pricing or ModelPricing()
        self._sleep = sleep

    @property
    def url(self) -> str:
        return self._url

    async def invoke(
        self,
        blocks: Sequence[MessageBlock],
        options: InvocationOptions = InvocationOptions(),
    ) -> Union[InvocationResult, ChunkStream]:
        """Forward the request; streams when ``options.stream`` is set."""
        payload = self._payload(blocks, options)

        if options.stream:
            return ChunkStream(self._stream_events(payload), timeout=options.timeout, deadline=options.deadline)

        body = await self._with_retries(lambda: self._post_once(payload))
        text = body["response"]
        raw_usage = body.get("usage")
        usage = normalize_usage(raw_usage, self._pricing) if raw_usage else self._estimate_usage(blocks, text)
        return InvocationResult(content=text, usage=usage)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ── Retry loop ───────────────────────────────────────────────────

    async def _with_retries(self, attempt_fn: Callable[[], Awaitable[T]]) -> T:
        return await with_retries(
            attempt_fn,
            max_attempts=self._max_attempts,
            backoff_base_seconds=self._backoff_base,
            backoff_max_seconds=self._backoff_max,
            jitter_factor=self._jitter_factor,
            sleep=self._sleep,
            label="Remote invoke",
        )

    # ── Single attempts ──────────────────────────────────────────────

    async def _post_once(self, payload: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.post(self._url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise RetryableError(f"{type(e).__name__}: {e}") from e
        _raise_for_status(response)
        try:
            body = response.json()
        except ValueError as e:
            raise NonRetryableError("remote response is not JSON", status_code=response.status_code) from e
        if not isinstance(body, dict) or not isinstance(body.get("response"), str):
            raise NonRetryableError(
                "remote response missing 'response' text", status_code=response.status_code
            )
        return body

    async def _open_stream(self, payload: dict[str, Any]) -> httpx.Response:
        client = self._get_client()
        request = client.build_request("POST", self._stream_url, json=payload, timeout=self._timeout)
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise RetryableError(f"{type(e).__name__}: {e}") from e
        if response.is_success:
            return response
        await response.aread()
        await response.aclose()
        _raise_for_status(response)
        return response

    async def _stream_events(self, payload: dict[str, Any]) -> AsyncIterator[StreamEvent]:
        response = await self._with_retries(lambda: self._open_stream(payload))
        usage: Optional[UsageEnvelope] = None
        received: list[str] = []
        try:
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    event = json.loads(line)
                except ValueError as e:
                    raise NonRetryableError(f"malformed stream line: {line[:80]!r}") from e
                if "error" in event:
                    if event.get("type") == InvocationTimeout.kind:
                        raise InvocationTimeout(f"remote stream timed out: {event['error']}", partial="".join(received))
                    raise InvocationTransportFailure(f"remote stream error: {event['error']}")
                chunk = event.get("response")
                if isinstance(chunk, str) and chunk:
                    received.append(chunk)
                    yield chunk
                if event.get("usage"):
                    usage = normalize_usage(event["usage"], self._pricing)
        except httpx.TimeoutException as e:
            raise InvocationTimeout(
                f"remote stream timed out: {type(e).__name__}: {e}", partial="".join(received)
            ) from e
        except httpx.HTTPError as e:
            raise InvocationTransportFailure(f"stream interrupted: {type(e).__name__}: {e}") from e
        finally:
            await response.aclose()
        if usage is None:
            raise InvocationTransportFailure("remote stream ended without a usage line; response is incomplete")
        yield usage

    # ── Helpers ──────────────────────────────────────────────────────

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    @staticmethod
    def _payload(blocks: Sequence[MessageBlock], options: InvocationOptions) -> dict[str, Any]:
        request = options.request
        if request is None:
            # No original request: forward the query block alone.
            request = ToolInvocationRequest(message=blocks[-1].content)
        return request.model_dump(mode="json")

    def _estimate_usage(self, blocks: Sequence[MessageBlock], completion: str) -> UsageEnvelope:
        return estimate_usage(blocks, completion, self._counter, self._pricing)


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    detail = f"remote service returned HTTP {status}"
    if status == 429 or status >= 500:
        raise RetryableError(detail, status_code=status)
    raise NonRetryableError(detail, status_code=status)
