from __future__ import annotations
"""Data models representing blob listings."""
from dataclasses import dataclass, field
from datetime import datetime
import enum
from typing import Optional


@dataclass(frozen=True)
class ObjectRecord:
    """Metadata about a single blob."""

    name: str
    size: int = 0
    content_type: str = ""
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    url: str = ""
    metadata: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def folder(self) -> str:
        """Path of the enclosing virtual folder, ``""`` for the root.

        Empty segments are dropped, so ``a//b`` lives in ``a``.
        """

        head, _, _ = self.name.rpartition("/")
        return "/".join(part for part in head.split("/") if part)

    @property
    def basename(self) -> str:
        return self.name.rpartition("/")[2]

    @property
    def is_folder_marker(self) -> bool:
        """True for zero-length placeholders such as ``docs/``."""
        return self.name.endswith("/")


@dataclass(frozen=True)
class ObjectContent:
    """A downloaded blob: its metadata and raw bytes."""

    record: ObjectRecord
    content: bytes


@dataclass(frozen=True)
class DeleteAck:
    name: str
    request_id: Optional[str] = None


@dataclass
class EnumerationPage:
    """Blobs returned by one listing request."""

    records: list[ObjectRecord] = field(default_factory=list)
    next_marker: Optional[str] = None


class ContainerState(enum.Enum):
    EXISTS = "exists"
    CREATED = "created"
