"""Managed file request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TargetSummary(BaseModel):
    """A configured target as listed to clients."""

    key: str
    display_name: str
    repo: str
    path: str


class FileResponse(BaseModel):
    """Current content of a target."""

    key: str
    display_name: str
    content: str
    version_tag: str
    last_modified: str | None = None
    updated_ago: str


class FileUpdate(BaseModel):
    """Request to replace a target's content."""

    content: str = Field(max_length=1_000_000)
    base_version: str | None = Field(
        default=None,
        max_length=64,
        description="Version tag the edited copy was loaded with",
    )


class HistoryEntryResponse(BaseModel):
    """One revision of a target."""

    version_id: str
    short_id: str
    message: str
    author: str
    date: str | None = None
    url: str | None = None


class CommitResponse(BaseModel):
    """Result of a committed edit, restore or clear."""

    success: bool = True
    target_key: str
    display_name: str
    action: str
    version_tag: str
    timestamp: str


class TargetStatus(BaseModel):
    connected: bool
    error: str | None = None


class StatusResponse(BaseModel):
    """Connectivity of every target plus the lock flag."""

    targets: dict[str, TargetStatus]
    system_locked: bool
