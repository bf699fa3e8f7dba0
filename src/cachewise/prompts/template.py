"""Static instruction templates — the cache-eligible prefix of every request."""

from __future__ import annotations

import dataclasses
import hashlib
from pathlib import Path


@dataclasses.dataclass(frozen=True)
class StaticTemplate:
    """A versioned, byte-exact instruction template.

    ``text`` is used verbatim as the cached block. Nothing is ever
    interpolated into it, so two requests on the same version send the
    same bytes.
    """

    version: str
    text: str

    @property
    def content_hash(self) -> str:
        """SHA-256 of the exact UTF-8 bytes of the template."""
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()

    @classmethod
    def from_file(cls, path: Path, version: str) -> StaticTemplate:
        """Load a template without normalizing whitespace or line endings."""
        return cls(version=version, text=path.read_bytes().decode("utf-8"))
