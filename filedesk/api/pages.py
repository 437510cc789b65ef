"""Server-rendered HTML pages: dashboard, form edits, admin console."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from filedesk.api.deps import get_audit_log, get_client_ip, get_lock_store, get_workflow
from filedesk.exceptions import DashboardError
from filedesk.services.audit_service import AuditKind, AuditLog
from filedesk.services.file_service import FileWorkflow
from filedesk.services.lock_service import LockStateStore
from filedesk.templating import templates

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"], include_in_schema=False)


def render_error(request: Request, exc: DashboardError) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "error.html",
        {"message": str(exc), "kind": exc.kind},
        status_code=exc.status_code,
    )


@router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
    lock_store: Annotated[LockStateStore, Depends(get_lock_store)],
    audit: Annotated[AuditLog, Depends(get_audit_log)],
    client_ip: Annotated[str, Depends(get_client_ip)],
) -> HTMLResponse:
    """Show every target's current content with an edit form."""
    await audit.append(AuditKind.PAGE_ACCESS, {"page": "dashboard"}, actor_ip=client_ip)
    views = await workflow.overview()
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "views": views,
            "locked": lock_store.current(),
            "success": request.query_params.get("success") == "true",
        },
    )


@router.post("/update/{key}")
async def update_from_form(
    key: str,
    request: Request,
    content: Annotated[str, Form()],
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
    client_ip: Annotated[str, Depends(get_client_ip)],
    base_version: Annotated[str | None, Form()] = None,
) -> Response:
    """Apply a dashboard form edit, then return to the dashboard."""
    try:
        await workflow.submit_edit(key, content, actor_ip=client_ip, base_version=base_version)
    except DashboardError as exc:
        return render_error(request, exc)
    return RedirectResponse("/?success=true", status_code=303)


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(
    request: Request,
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
    lock_store: Annotated[LockStateStore, Depends(get_lock_store)],
    audit: Annotated[AuditLog, Depends(get_audit_log)],
    client_ip: Annotated[str, Depends(get_client_ip)],
) -> HTMLResponse:
    """Admin console shell; data is loaded through the admin API."""
    await audit.append(AuditKind.PAGE_ACCESS, {"page": "admin"}, actor_ip=client_ip)
    return templates.TemplateResponse(
        request,
        "admin.html",
        {"targets": workflow.targets, "locked": lock_store.current()},
    )
