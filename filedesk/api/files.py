"""Managed file API endpoints: read, edit, history, restore."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Query

from filedesk.api.deps import get_client_ip, get_settings, get_workflow
from filedesk.config import Settings
from filedesk.schemas.files import (
    CommitResponse,
    FileResponse,
    FileUpdate,
    HistoryEntryResponse,
    TargetSummary,
)
from filedesk.services.datetime_service import format_iso, time_ago
from filedesk.services.file_service import MAX_PAGE_SIZE, FileWorkflow

if TYPE_CHECKING:
    from filedesk.github.base import HistoryEntry
    from filedesk.services.file_service import CommitResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["files"])


def commit_response(result: CommitResult) -> CommitResponse:
    return CommitResponse(
        target_key=result.target_key,
        display_name=result.display_name,
        action=result.action,
        version_tag=result.version_tag,
        timestamp=result.timestamp,
    )


def _history_response(entry: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        version_id=entry.version_id,
        short_id=entry.short_id,
        message=entry.message,
        author=entry.author,
        date=format_iso(entry.date) if entry.date else None,
        url=entry.url,
    )


@router.get("/files", response_model=list[TargetSummary])
async def list_files(
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
) -> list[TargetSummary]:
    """List the configured targets."""
    return [
        TargetSummary(key=t.key, display_name=t.display_name, repo=t.repo, path=t.path)
        for t in workflow.targets
    ]


@router.get("/files/{key}", response_model=FileResponse)
async def get_file(
    key: str,
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
) -> FileResponse:
    """Fetch the current content and version tag of a target."""
    target = workflow.target(key)
    snapshot = await workflow.get_file(key)
    return FileResponse(
        key=target.key,
        display_name=target.display_name,
        content=snapshot.text,
        version_tag=snapshot.version_tag,
        last_modified=format_iso(snapshot.last_modified) if snapshot.last_modified else None,
        updated_ago=time_ago(snapshot.last_modified),
    )


@router.put("/files/{key}", response_model=CommitResponse)
async def update_file(
    key: str,
    body: FileUpdate,
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
    client_ip: Annotated[str, Depends(get_client_ip)],
) -> CommitResponse:
    """Replace a target's content, conditioned on its version tag."""
    result = await workflow.submit_edit(
        key, body.content, actor_ip=client_ip, base_version=body.base_version
    )
    return commit_response(result)


@router.get("/history/{key}", response_model=list[HistoryEntryResponse])
async def get_history(
    key: str,
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
    settings: Annotated[Settings, Depends(get_settings)],
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1, le=MAX_PAGE_SIZE),
) -> list[HistoryEntryResponse]:
    """List a target's revisions, newest first."""
    entries = await workflow.list_history(key, page, per_page or settings.history_page_size)
    return [_history_response(entry) for entry in entries]


@router.post("/restore/{key}/{version_id}", response_model=CommitResponse)
async def restore_version(
    key: str,
    version_id: str,
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
    client_ip: Annotated[str, Depends(get_client_ip)],
) -> CommitResponse:
    """Re-apply a past revision's content as a new revision."""
    result = await workflow.restore_version(key, version_id, actor_ip=client_ip)
    return commit_response(result)
