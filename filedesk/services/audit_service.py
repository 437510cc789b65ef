"""Append-only audit log of dashboard actions."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from filedesk.models.audit import AuditRecord
from filedesk.services.datetime_service import format_iso, now_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class AuditKind(StrEnum):
    PAGE_ACCESS = "page-access"
    FILE_UPDATE = "file-update"
    FILE_RESTORE = "file-restore"
    BLOCKED_EDIT = "blocked-edit"
    BLOCKED_RESTORE = "blocked-restore"
    ADMIN_ACTION = "admin-action"
    ADMIN_FAILED_LOGIN = "admin-failed-login"
    DEPLOY = "deploy"
    BLOCKED_DEPLOY = "blocked-deploy"


class AuditLog:
    """Writes and reads audit records.

    ``append`` never raises: an audit failure is logged and dropped so it
    cannot mask the outcome of the action being audited.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(
        self,
        kind: AuditKind,
        payload: dict[str, Any] | None = None,
        *,
        actor_ip: str | None = None,
    ) -> bool:
        """Persist one record. Returns False when the write failed."""
        record = AuditRecord(
            kind=str(kind),
            actor_ip=actor_ip,
            payload=dict(payload or {}),
            created_at=format_iso(now_utc()),
        )
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except Exception:
            logger.error("Failed to write audit record %s", kind, exc_info=True)
            return False
        return True

    async def query_recent(self, limit: int = 50) -> list[AuditRecord]:
        """Return up to ``limit`` records, newest first."""
        async with self._session_factory() as session:
            stmt = select(AuditRecord).order_by(AuditRecord.id.desc()).limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())
