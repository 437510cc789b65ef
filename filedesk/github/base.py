"""Protocol and data classes for the remote versioned-file store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True)
class TargetDescriptor:
    """A managed file: where it lives and how to reach it."""

    key: str
    repo: str
    path: str
    token: str = field(repr=False)
    display_name: str
    branch: str | None = None


@dataclass(frozen=True)
class FileSnapshot:
    """Current state of a target as fetched from the remote store."""

    content: bytes
    version_tag: str
    last_modified: datetime | None = None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class HistoryEntry:
    """One past revision of a target."""

    version_id: str
    message: str
    author: str
    date: datetime | None
    url: str | None = None

    @property
    def short_id(self) -> str:
        return self.version_id[:7]


@runtime_checkable
class ContentStore(Protocol):
    """Read and conditionally write versioned files.

    ``write`` must be rejected by the store with ``VersionConflictError`` when
    ``expected_version`` is not the target's current version tag.
    """

    async def fetch_current(self, target: TargetDescriptor) -> FileSnapshot:
        """Return content and version tag of the target's current revision."""
        ...

    async def fetch_history(
        self, target: TargetDescriptor, page: int, page_size: int
    ) -> list[HistoryEntry]:
        """Return one page of revisions, newest first."""
        ...

    async def fetch_content_at_version(self, target: TargetDescriptor, version_id: str) -> bytes:
        """Return the raw content of the target at a past revision."""
        ...

    async def write(
        self,
        target: TargetDescriptor,
        content: bytes,
        expected_version: str,
        message: str,
    ) -> str:
        """Create a new revision and return its version tag."""
        ...
