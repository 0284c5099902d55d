"""File storage contract.

Callers work with named files and never see the wire protocol of the store
behind a ``Storage`` implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Protocol

SEPARATOR = "/"


@dataclass(frozen=True, slots=True)
class FileInfo:
    """One listed entry: a stored object or a synthesized directory."""

    name: str
    size: int
    mod_time: datetime
    is_dir: bool = False


class Storage(Protocol):
    """Protocol implemented by every storage backend."""

    def list(self) -> list[FileInfo]:
        """Return every entry under the namespace root, sorted by name descending."""
        ...

    def delete(self, name: str) -> None:
        """Remove the object ``name`` and everything nested under it."""
        ...

    def upload(self, name: str, reader: BinaryIO) -> None:
        """Store the full content of ``reader`` under ``name``."""
        ...

    def download(self, name: str, writer: BinaryIO) -> None:
        """Write the full content of ``name`` to ``writer``."""
        ...
