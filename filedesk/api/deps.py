"""Shared API dependencies: settings, services held on app state, admin auth."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from filedesk.config import Settings
from filedesk.exceptions import UnauthorizedError
from filedesk.services.audit_service import AuditKind, AuditLog
from filedesk.services.auth_service import decode_access_token
from filedesk.services.file_service import FileWorkflow
from filedesk.services.lock_service import LockStateStore
from filedesk.services.notification_service import NotificationHub

logger = logging.getLogger(__name__)

ADMIN_COOKIE = "admin_token"

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_workflow(request: Request) -> FileWorkflow:
    workflow: FileWorkflow = request.app.state.workflow
    return workflow


def get_lock_store(request: Request) -> LockStateStore:
    lock_store: LockStateStore = request.app.state.lock_store
    return lock_store


def get_audit_log(request: Request) -> AuditLog:
    audit: AuditLog = request.app.state.audit_log
    return audit


def get_hub(request: Request) -> NotificationHub:
    hub: NotificationHub = request.app.state.hub
    return hub


def get_client_ip(request: Request) -> str:
    """Return the caller's IP, trusting X-Forwarded-For only from known proxies."""
    peer = request.client.host if request.client and request.client.host else "unknown"
    settings: Settings = request.app.state.settings
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and peer in settings.trusted_proxy_ips:
        return forwarded_for.split(",", maxsplit=1)[0].strip()
    return peer


async def require_admin(
    request: Request,
    audit: Annotated[AuditLog, Depends(get_audit_log)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> str:
    """Require an admin session. Returns the admin's client IP as actor id.

    Missing or rejected credentials are audited as failed admin logins.
    """
    client_ip = get_client_ip(request)
    token_value = (
        credentials.credentials if credentials is not None else request.cookies.get(ADMIN_COOKIE)
    )
    settings: Settings = request.app.state.settings
    if token_value is None:
        msg = "Admin authentication required"
    elif decode_access_token(token_value, settings.secret_key) is None:
        msg = "Invalid or expired admin session"
    else:
        return client_ip

    logger.warning("Rejected admin credential for %s from %s", request.url.path, client_ip)
    await audit.append(
        AuditKind.ADMIN_FAILED_LOGIN,
        {"ip": client_ip, "path": request.url.path},
        actor_ip=client_ip,
    )
    raise UnauthorizedError(msg)
