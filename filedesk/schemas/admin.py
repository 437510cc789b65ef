"""Admin request/response schemas."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    password: str = Field(min_length=1, max_length=256)


class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"


class LockUpdate(BaseModel):
    locked: bool


class LockStateResponse(BaseModel):
    """Current lock flag and its last change."""

    locked: bool
    changed_by: str | None = None
    changed_at: str | None = None


class AuditRecordResponse(BaseModel):
    id: int
    kind: str
    actor_ip: str | None = None
    payload: dict[str, Any]
    created_at: str


class AuditLogResponse(BaseModel):
    items: list[AuditRecordResponse]


class DeployResponse(BaseModel):
    message: str
    status: str = "success"


class LockTransitionResponse(BaseModel):
    locked: bool
    actor: str
    created_at: str


class LockHistoryResponse(BaseModel):
    items: list[LockTransitionResponse]
