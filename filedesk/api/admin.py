"""Admin API endpoints: login, system lock, clearing files, audit log."""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from filedesk.api.deps import (
    ADMIN_COOKIE,
    get_audit_log,
    get_client_ip,
    get_hub,
    get_lock_store,
    get_settings,
    get_workflow,
    require_admin,
)
from filedesk.api.files import commit_response
from filedesk.config import Settings
from filedesk.exceptions import UnauthorizedError
from filedesk.schemas.admin import (
    AuditLogResponse,
    AuditRecordResponse,
    LockHistoryResponse,
    LockStateResponse,
    LockTransitionResponse,
    LockUpdate,
    LoginRequest,
    TokenResponse,
)
from filedesk.schemas.files import CommitResponse
from filedesk.services.audit_service import AuditKind, AuditLog
from filedesk.services.auth_service import create_access_token, verify_password
from filedesk.services.file_service import FileWorkflow
from filedesk.services.lock_service import LockState, LockStateStore
from filedesk.services.notification_service import (
    SYSTEM_LOCKED,
    SYSTEM_UNLOCKED,
    NotificationHub,
)
from filedesk.services.rate_limit_service import InMemoryRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

CSRF_COOKIE = "csrf_token"


def _lock_response(state: LockState) -> LockStateResponse:
    return LockStateResponse(
        locked=state.locked,
        changed_by=state.changed_by,
        changed_at=state.changed_at,
    )


def _check_rate_limit(limiter: InMemoryRateLimiter, key: str, settings: Settings) -> None:
    limited, retry_after = limiter.is_limited(
        key, settings.auth_login_max_failures, settings.auth_rate_limit_window_seconds
    )
    if limited:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many failed login attempts",
            headers={"Retry-After": str(retry_after)},
        )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
    audit: Annotated[AuditLog, Depends(get_audit_log)],
    client_ip: Annotated[str, Depends(get_client_ip)],
) -> TokenResponse:
    """Exchange the admin password for a session token."""
    limiter: InMemoryRateLimiter = request.app.state.rate_limiter
    limiter_key = f"admin-login:{client_ip}"
    _check_rate_limit(limiter, limiter_key, settings)

    password_hash: str = request.app.state.admin_password_hash
    if not verify_password(body.password, password_hash):
        limiter.add_failure(limiter_key, settings.auth_rate_limit_window_seconds)
        logger.warning("Failed admin login from %s", client_ip)
        await audit.append(AuditKind.ADMIN_FAILED_LOGIN, {"ip": client_ip}, actor_ip=client_ip)
        msg = "Invalid admin password"
        raise UnauthorizedError(msg)

    limiter.clear(limiter_key)
    token = create_access_token(settings.secret_key, settings.access_token_expire_minutes)
    secure = not settings.debug
    max_age = settings.access_token_expire_minutes * 60
    response.set_cookie(
        key=ADMIN_COOKIE,
        value=token,
        httponly=True,
        secure=secure,
        samesite="strict",
        path="/",
        max_age=max_age,
    )
    response.set_cookie(
        key=CSRF_COOKIE,
        value=secrets.token_urlsafe(32),
        httponly=False,
        secure=secure,
        samesite="strict",
        path="/",
        max_age=max_age,
    )
    await audit.append(AuditKind.ADMIN_ACTION, {"action": "login"}, actor_ip=client_ip)
    return TokenResponse(access_token=token)


@router.post("/logout", status_code=204)
async def logout(response: Response) -> None:
    """Drop the admin session cookies."""
    response.delete_cookie(ADMIN_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")


@router.get("/lock", response_model=LockStateResponse)
async def get_lock(
    lock_store: Annotated[LockStateStore, Depends(get_lock_store)],
    _admin: Annotated[str, Depends(require_admin)],
) -> LockStateResponse:
    """Return the current lock flag and its last change."""
    return _lock_response(lock_store.state)


@router.get("/lock/history", response_model=LockHistoryResponse)
async def get_lock_history(
    lock_store: Annotated[LockStateStore, Depends(get_lock_store)],
    _admin: Annotated[str, Depends(require_admin)],
    limit: int = Query(default=50, ge=1, le=500),
) -> LockHistoryResponse:
    """Return lock transitions, newest first."""
    transitions = await lock_store.history(limit)
    return LockHistoryResponse(
        items=[
            LockTransitionResponse(locked=t.locked, actor=t.actor, created_at=t.created_at)
            for t in transitions
        ]
    )


@router.post("/lock", response_model=LockStateResponse)
async def set_lock(
    body: LockUpdate,
    lock_store: Annotated[LockStateStore, Depends(get_lock_store)],
    audit: Annotated[AuditLog, Depends(get_audit_log)],
    hub: Annotated[NotificationHub, Depends(get_hub)],
    admin_ip: Annotated[str, Depends(require_admin)],
) -> LockStateResponse:
    """Lock or unlock editing, restoring and deploying."""
    state = await lock_store.set_locked(body.locked, actor=admin_ip)
    action = "lock" if body.locked else "unlock"
    await audit.append(AuditKind.ADMIN_ACTION, {"action": action}, actor_ip=admin_ip)
    await hub.publish(SYSTEM_LOCKED if body.locked else SYSTEM_UNLOCKED, {})
    return _lock_response(state)


@router.post("/clear/{key}", response_model=CommitResponse)
async def clear_file(
    key: str,
    workflow: Annotated[FileWorkflow, Depends(get_workflow)],
    admin_ip: Annotated[str, Depends(require_admin)],
) -> CommitResponse:
    """Empty a target's content."""
    result = await workflow.clear_file(key, actor_ip=admin_ip)
    return commit_response(result)


@router.get("/audit", response_model=AuditLogResponse)
async def list_audit(
    audit: Annotated[AuditLog, Depends(get_audit_log)],
    _admin: Annotated[str, Depends(require_admin)],
    limit: int = Query(default=50, ge=1, le=500),
) -> AuditLogResponse:
    """Return the most recent audit records, newest first."""
    records = await audit.query_recent(limit)
    return AuditLogResponse(
        items=[
            AuditRecordResponse(
                id=r.id,
                kind=r.kind,
                actor_ip=r.actor_ip,
                payload=r.payload,
                created_at=r.created_at,
            )
            for r in records
        ]
    )
