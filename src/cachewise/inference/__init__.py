"""Invocation adapters: in-process (LiteLLM) and remote (HTTP) variants.

Usage::

    from cachewise.inference import InvocationOptions, create_invocation_adapter

    adapter = create_invocation_adapter(AppSettings())
    result = await adapter.invoke(blocks, InvocationOptions())
"""

from __future__ import annotations

from cachewise.inference.factory import create_invocation_adapter
from cachewise.inference.local import LocalAdapter
from cachewise.inference.protocols import IInvocationAdapter, InvocationOptions
from cachewise.inference.remote import RemoteAdapter
from cachewise.inference.streaming import ChunkStream

__all__ = [
    "ChunkStream",
    "IInvocationAdapter",
    "InvocationOptions",
    "LocalAdapter",
    "RemoteAdapter",
    "create_invocation_adapter",
]
