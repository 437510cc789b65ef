"""Deployment page and webhook trigger, gated by the system lock."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from filedesk.api.deps import get_audit_log, get_client_ip, get_lock_store, get_settings
from filedesk.config import Settings
from filedesk.exceptions import DeployError, SystemLockedError
from filedesk.schemas.admin import DeployResponse
from filedesk.services.audit_service import AuditKind, AuditLog
from filedesk.services.deploy_service import trigger_deploy
from filedesk.services.lock_service import LockStateStore
from filedesk.templating import templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deploy", tags=["deploy"])

DEPLOY_LOCKED_MESSAGE = "Deployment is currently disabled by administrator"


@router.get("", response_class=HTMLResponse)
async def deploy_page(
    request: Request,
    lock_store: Annotated[LockStateStore, Depends(get_lock_store)],
) -> HTMLResponse:
    """Render the deploy page with the current availability."""
    return templates.TemplateResponse(
        request,
        "deploy.html",
        {"locked": lock_store.current()},
    )


@router.post("/trigger", response_model=DeployResponse)
async def deploy_trigger(
    lock_store: Annotated[LockStateStore, Depends(get_lock_store)],
    audit: Annotated[AuditLog, Depends(get_audit_log)],
    settings: Annotated[Settings, Depends(get_settings)],
    client_ip: Annotated[str, Depends(get_client_ip)],
) -> DeployResponse:
    """Call the deployment webhook unless the system is locked."""
    if lock_store.current():
        logger.warning("Blocked deploy from %s: system locked", client_ip)
        await audit.append(AuditKind.BLOCKED_DEPLOY, {}, actor_ip=client_ip)
        raise SystemLockedError(DEPLOY_LOCKED_MESSAGE)

    try:
        await trigger_deploy(settings.deploy_hook_url, timeout=settings.github_timeout_seconds)
    except DeployError as exc:
        await audit.append(
            AuditKind.DEPLOY, {"success": False, "error": str(exc)}, actor_ip=client_ip
        )
        raise
    await audit.append(AuditKind.DEPLOY, {"success": True}, actor_ip=client_ip)
    return DeployResponse(message="Deployment triggered successfully!")
