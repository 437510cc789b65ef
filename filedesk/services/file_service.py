"""Edit and restore workflow for managed files.

Every write is lock-gated (except admin clears), reads the file's current
version tag, and presents a tag to the store's conditional write. The store
alone decides conflicts; nothing here retries. Only after the write commits
are the audit record and the ``fileUpdated`` broadcast attempted, each in its
own error boundary.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from filedesk.exceptions import (
    DashboardError,
    InvalidTargetError,
    SystemLockedError,
    VersionConflictError,
)
from filedesk.services.audit_service import AuditKind
from filedesk.services.datetime_service import format_iso, now_utc
from filedesk.services.notification_service import FILE_UPDATED

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from filedesk.github.base import ContentStore, FileSnapshot, HistoryEntry, TargetDescriptor
    from filedesk.services.audit_service import AuditLog
    from filedesk.services.lock_service import LockStateStore
    from filedesk.services.notification_service import NotificationHub

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
LOCKED_MESSAGE = "Editing is currently disabled by administrator"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a committed write."""

    target_key: str
    display_name: str
    action: str
    version_tag: str
    timestamp: str

    def event_payload(self) -> dict[str, Any]:
        return {
            "targetKey": self.target_key,
            "displayName": self.display_name,
            "action": self.action,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TargetView:
    """A target together with its fetched snapshot or the fetch error."""

    target: TargetDescriptor
    snapshot: FileSnapshot | None = None
    error: str | None = None

    @property
    def connected(self) -> bool:
        return self.snapshot is not None


@dataclass(frozen=True)
class SystemStatus:
    targets: dict[str, dict[str, Any]]
    system_locked: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FileWorkflow:
    """Orchestrates reads, edits and restores across the configured targets."""

    def __init__(
        self,
        targets: Mapping[str, TargetDescriptor],
        store: ContentStore,
        lock_store: LockStateStore,
        audit: AuditLog,
        hub: NotificationHub,
    ) -> None:
        self._targets = dict(targets)
        self.store = store
        self.lock_store = lock_store
        self.audit = audit
        self.hub = hub

    @property
    def targets(self) -> list[TargetDescriptor]:
        return list(self._targets.values())

    def target(self, key: str) -> TargetDescriptor:
        """Resolve a target key. Raises InvalidTargetError for unknown keys."""
        target = self._targets.get(key)
        if target is None:
            msg = f"Invalid repository key: {key!r}"
            raise InvalidTargetError(msg)
        return target

    # ── Reads ──────────────────────────────────────────

    async def get_file(self, key: str) -> FileSnapshot:
        return await self.store.fetch_current(self.target(key))

    async def list_history(
        self, key: str, page: int = 1, page_size: int = 20
    ) -> list[HistoryEntry]:
        target = self.target(key)
        if page < 1:
            msg = "page must be >= 1"
            raise ValueError(msg)
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            msg = f"page size must be between 1 and {MAX_PAGE_SIZE}"
            raise ValueError(msg)
        return await self.store.fetch_history(target, page, page_size)

    async def overview(self) -> list[TargetView]:
        """Fetch every target, capturing per-target failures instead of raising."""
        views: list[TargetView] = []
        for target in self._targets.values():
            try:
                snapshot = await self.store.fetch_current(target)
            except DashboardError as exc:
                logger.warning("Could not load %s: %s", target.key, exc)
                views.append(TargetView(target=target, error=str(exc)))
            else:
                views.append(TargetView(target=target, snapshot=snapshot))
        return views

    async def get_status(self) -> SystemStatus:
        views = await self.overview()
        return SystemStatus(
            targets={
                view.target.key: {"connected": view.connected, "error": view.error}
                for view in views
            },
            system_locked=self.lock_store.current(),
        )

    # ── Writes ─────────────────────────────────────────

    async def submit_edit(
        self,
        key: str,
        content: str | bytes,
        actor_ip: str | None,
        base_version: str | None = None,
    ) -> CommitResult:
        """Replace a target's content.

        ``base_version`` is the version tag the editor was loaded with; when
        given it is presented to the store instead of the freshly fetched one,
        so an edit made against an outdated copy is rejected.
        """
        target = self.target(key)
        await self._check_unlocked(target, AuditKind.BLOCKED_EDIT, actor_ip)

        data = content.encode("utf-8") if isinstance(content, str) else content
        snapshot = await self.store.fetch_current(target)
        expected = base_version or snapshot.version_tag
        return await self._commit(
            target,
            data,
            expected,
            message=f"Updated {target.display_name} via dashboard",
            action="updated",
            audit_kind=AuditKind.FILE_UPDATE,
            audit_payload={"content_length": len(data)},
            actor_ip=actor_ip,
        )

    async def restore_version(
        self, key: str, version_id: str, actor_ip: str | None
    ) -> CommitResult:
        """Re-apply the content a target had at ``version_id`` as a new revision."""
        target = self.target(key)
        await self._check_unlocked(target, AuditKind.BLOCKED_RESTORE, actor_ip)

        snapshot = await self.store.fetch_current(target)
        data = await self.store.fetch_content_at_version(target, version_id)
        return await self._commit(
            target,
            data,
            snapshot.version_tag,
            message=(
                f"Restored {target.display_name} to previous version ({version_id[:7]})"
            ),
            action="restored",
            audit_kind=AuditKind.FILE_RESTORE,
            audit_payload={"version_id": version_id},
            actor_ip=actor_ip,
        )

    async def clear_file(self, key: str, actor_ip: str | None) -> CommitResult:
        """Admin action: empty a target's content. Not subject to the lock."""
        target = self.target(key)
        snapshot = await self.store.fetch_current(target)
        return await self._commit(
            target,
            b"",
            snapshot.version_tag,
            message=f"Cleared {target.display_name} via admin dashboard",
            action="cleared",
            audit_kind=AuditKind.ADMIN_ACTION,
            audit_payload={"action": "clear"},
            actor_ip=actor_ip,
        )

    async def _check_unlocked(
        self, target: TargetDescriptor, blocked_kind: AuditKind, actor_ip: str | None
    ) -> None:
        # Point-in-time read: an admin lock landing after this check does not
        # stop the write already in progress.
        if not self.lock_store.current():
            return
        logger.warning(
            "Blocked %s on %s from %s: system locked", blocked_kind, target.key, actor_ip
        )
        await self.audit.append(
            blocked_kind,
            {"target": target.key, "display_name": target.display_name},
            actor_ip=actor_ip,
        )
        raise SystemLockedError(LOCKED_MESSAGE)

    async def _commit(
        self,
        target: TargetDescriptor,
        data: bytes,
        expected_version: str,
        *,
        message: str,
        action: str,
        audit_kind: AuditKind,
        audit_payload: dict[str, Any],
        actor_ip: str | None,
    ) -> CommitResult:
        try:
            new_version = await self.store.write(target, data, expected_version, message)
        except VersionConflictError:
            logger.warning(
                "Version conflict writing %s (presented %s)", target.key, expected_version
            )
            raise

        result = CommitResult(
            target_key=target.key,
            display_name=target.display_name,
            action=action,
            version_tag=new_version,
            timestamp=format_iso(now_utc()),
        )
        logger.info("%s %s -> %s", action.capitalize(), target.key, new_version)

        payload = {"target": target.key, "display_name": target.display_name, **audit_payload}
        effects: list[tuple[str, Callable[[], Awaitable[object]]]] = [
            ("audit", lambda: self.audit.append(audit_kind, payload, actor_ip=actor_ip)),
            ("notify", lambda: self.hub.publish(FILE_UPDATED, result.event_payload())),
        ]
        for name, effect in effects:
            try:
                await effect()
            except Exception:
                logger.error(
                    "Post-commit %s step failed for %s", name, target.key, exc_info=True
                )
        return result
