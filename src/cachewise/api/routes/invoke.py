"""Invocation endpoints — the same contract the remote adapter speaks."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from cachewise.exceptions import CachewiseError
from cachewise.inference.streaming import ChunkStream
from cachewise.models import ToolInvocationRequest
from cachewise.services.invocation_service import InvocationService

log = logging.getLogger(__name__)

router = APIRouter(tags=["invocation"])


class UsageResponse(BaseModel):
    """Usage envelope for a completed invocation."""

    total_tokens: int = 0
    cached_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost_estimate: float = 0.0


class InvokeResponse(BaseModel):
    """Non-streaming invocation response."""

    response: str
    usage: UsageResponse = Field(default_factory=UsageResponse)


def _service(request: Request) -> InvocationService:
    return request.app.state.service


@router.post("/invoke", response_model=InvokeResponse)
async def invoke(body: ToolInvocationRequest, request: Request) -> InvokeResponse:
    """Run one invocation and return the full response text."""
    result = await _service(request).invoke(body)
    return InvokeResponse(response=str(result.content), usage=UsageResponse(**result.usage.to_dict()))


@router.post("/invoke/stream")
async def invoke_stream(body: ToolInvocationRequest, request: Request) -> StreamingResponse:
    """Stream the response as NDJSON.

    Each line is ``{"response": chunk}``; a clean end adds one final
    ``{"usage": {...}}`` line. A failure after streaming has begun is sent as
    ``{"error": ..., "type": kind, "incomplete": true}`` and no usage line.
    """
    stream = await _service(request).stream(body)
    return StreamingResponse(_ndjson(stream), media_type="application/x-ndjson")


async def _ndjson(stream: ChunkStream) -> AsyncIterator[str]:
    try:
        async for chunk in stream:
            yield json.dumps({"response": chunk}) + "\n"
    except CachewiseError as e:
        log.warning("Stream ended early: %s", e)
        yield json.dumps({"error": str(e), "type": e.kind, "incomplete": True}) + "\n"
        return
    finally:
        if not stream.completed:
            await stream.aclose()
    usage = stream.usage
    if usage is not None:
        yield json.dumps({"usage": usage.to_dict()}) + "\n"
