"""Prompt composition: static templates and the cache-aware composer.

Usage::

    from cachewise.prompts import PromptComposer, SUPPORT_AGENT_TEMPLATE

    composer = PromptComposer(SUPPORT_AGENT_TEMPLATE)
    blocks = composer.compose("Where is my order?", bundle)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from cachewise.prompts.composer import PromptComposer
from cachewise.prompts.template import StaticTemplate
from cachewise.prompts.templates.support_agent import SUPPORT_AGENT_TEMPLATE

__all__ = [
    "PromptComposer",
    "StaticTemplate",
    "SUPPORT_AGENT_TEMPLATE",
    "load_template",
]


def load_template(version: str, path: Optional[Path] = None) -> StaticTemplate:
    """Resolve the process template: a file when ``path`` is set, else the built-in one."""
    if path is not None:
        return StaticTemplate.from_file(path, version)
    if version != SUPPORT_AGENT_TEMPLATE.version:
        raise ValueError(
            f"No built-in template for version {version!r}; "
            f"set CACHEWISE_COMPOSER_TEMPLATE_PATH or use {SUPPORT_AGENT_TEMPLATE.version!r}"
        )
    return SUPPORT_AGENT_TEMPLATE
