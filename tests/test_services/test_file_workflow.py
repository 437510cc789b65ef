"""Tests for the lock-gated edit/restore workflow."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from filedesk.exceptions import (
    InvalidTargetError,
    RemoteNotFoundError,
    SystemLockedError,
    VersionConflictError,
)
from filedesk.services.notification_service import FILE_UPDATED
from tests.conftest import make_viewer, sent_events

if TYPE_CHECKING:
    from filedesk.services.audit_service import AuditLog
    from filedesk.services.file_service import FileWorkflow
    from filedesk.services.lock_service import LockStateStore
    from filedesk.services.notification_service import NotificationHub
    from tests.conftest import FakeContentStore


async def _kinds(audit_log: AuditLog) -> list[str]:
    return [record.kind for record in await audit_log.query_recent(100)]


class TestSubmitEdit:
    async def test_edit_with_current_tag_creates_revision(
        self, workflow: FileWorkflow, store: FakeContentStore
    ) -> None:
        result = await workflow.submit_edit(
            "primary", '{"banner": "bye"}', actor_ip="10.0.0.1", base_version="abc123"
        )

        assert result.action == "updated"
        assert result.target_key == "primary"
        assert result.display_name == "Promo banner"
        assert result.version_tag != "abc123"
        assert result.version_tag == store.current_version("primary")
        assert store.current_content("primary") == b'{"banner": "bye"}'
        assert store.writes[0].expected_version == "abc123"
        assert store.writes[0].message == "Updated Promo banner via dashboard"

    async def test_edit_without_base_version_uses_fetched_tag(
        self, workflow: FileWorkflow, store: FakeContentStore
    ) -> None:
        await workflow.submit_edit("primary", "plain", actor_ip="10.0.0.1")
        assert store.writes[0].expected_version == "abc123"

    async def test_text_is_written_as_utf8(
        self, workflow: FileWorkflow, store: FakeContentStore
    ) -> None:
        await workflow.submit_edit("primary", "café\r\n", actor_ip=None)
        assert store.current_content("primary") == "café\r\n".encode()

    async def test_stale_tag_is_rejected(
        self, workflow: FileWorkflow, store: FakeContentStore, audit_log: AuditLog
    ) -> None:
        await workflow.submit_edit("primary", "first", actor_ip="10.0.0.1")
        current = store.current_version("primary")

        with pytest.raises(VersionConflictError):
            await workflow.submit_edit(
                "primary", "second", actor_ip="10.0.0.2", base_version="abc123"
            )

        assert store.current_version("primary") == current
        assert store.current_content("primary") == b"first"
        assert await _kinds(audit_log) == ["file-update"]

    async def test_locked_system_blocks_edit(
        self,
        workflow: FileWorkflow,
        store: FakeContentStore,
        lock_store: LockStateStore,
        audit_log: AuditLog,
    ) -> None:
        await lock_store.set_locked(True, actor="admin")

        with pytest.raises(SystemLockedError):
            await workflow.submit_edit("primary", "nope", actor_ip="10.0.0.9")

        assert store.writes == []
        records = await audit_log.query_recent(10)
        assert [r.kind for r in records] == ["blocked-edit"]
        assert records[0].actor_ip == "10.0.0.9"
        assert records[0].payload["target"] == "primary"

    async def test_unknown_target(self, workflow: FileWorkflow, store: FakeContentStore) -> None:
        with pytest.raises(InvalidTargetError, match="nope"):
            await workflow.submit_edit("nope", "x", actor_ip=None)
        assert store.writes == []

    async def test_audit_records_content_length(
        self, workflow: FileWorkflow, audit_log: AuditLog
    ) -> None:
        await workflow.submit_edit("secondary", "12345", actor_ip="10.0.0.1")

        [record] = await audit_log.query_recent(10)
        assert record.kind == "file-update"
        assert record.actor_ip == "10.0.0.1"
        assert record.payload == {
            "target": "secondary",
            "display_name": "Menu",
            "content_length": 5,
        }


class TestRestoreVersion:
    async def test_restore_reapplies_old_content(
        self, workflow: FileWorkflow, store: FakeContentStore, audit_log: AuditLog
    ) -> None:
        await workflow.submit_edit("primary", "changed", actor_ip=None)
        changed_tag = store.current_version("primary")

        result = await workflow.restore_version("primary", "abc123", actor_ip="10.0.0.3")

        assert result.action == "restored"
        assert store.current_content("primary") == b'{"banner": "hello"}'
        assert result.version_tag not in {"abc123", changed_tag}
        assert store.writes[-1].message == "Restored Promo banner to previous version (abc123)"
        assert store.writes[-1].expected_version == changed_tag
        assert (await _kinds(audit_log))[0] == "file-restore"

    async def test_unknown_version(self, workflow: FileWorkflow, store: FakeContentStore) -> None:
        with pytest.raises(RemoteNotFoundError):
            await workflow.restore_version("primary", "deadbeef", actor_ip=None)
        assert store.writes == []

    async def test_locked_system_blocks_restore(
        self,
        workflow: FileWorkflow,
        store: FakeContentStore,
        lock_store: LockStateStore,
        audit_log: AuditLog,
    ) -> None:
        await lock_store.set_locked(True, actor="admin")

        with pytest.raises(SystemLockedError):
            await workflow.restore_version("primary", "abc123", actor_ip="10.0.0.3")

        assert store.writes == []
        assert await _kinds(audit_log) == ["blocked-restore"]


class TestClearFile:
    async def test_clear_ignores_lock(
        self,
        workflow: FileWorkflow,
        store: FakeContentStore,
        lock_store: LockStateStore,
        audit_log: AuditLog,
    ) -> None:
        await lock_store.set_locked(True, actor="admin")

        result = await workflow.clear_file("secondary", actor_ip="10.0.0.4")

        assert result.action == "cleared"
        assert store.current_content("secondary") == b""
        assert store.writes[0].message == "Cleared Menu via admin dashboard"
        [record] = await audit_log.query_recent(10)
        assert record.kind == "admin-action"
        assert record.payload["action"] == "clear"


class TestHistory:
    async def test_pages_newest_first(
        self, workflow: FileWorkflow, store: FakeContentStore
    ) -> None:
        second = store.seed("primary", b"two")
        third = store.seed("primary", b"three")

        first_page = await workflow.list_history("primary", page=1, page_size=2)
        second_page = await workflow.list_history("primary", page=2, page_size=2)

        assert [e.version_id for e in first_page] == [third, second]
        assert [e.version_id for e in second_page] == ["abc123"]

    async def test_page_beyond_end_is_empty(self, workflow: FileWorkflow) -> None:
        assert await workflow.list_history("primary", page=5, page_size=20) == []

    @pytest.mark.parametrize(("page", "page_size"), [(0, 20), (1, 0), (1, 101)])
    async def test_invalid_paging(self, workflow: FileWorkflow, page: int, page_size: int) -> None:
        with pytest.raises(ValueError):
            await workflow.list_history("primary", page=page, page_size=page_size)


class TestNotifications:
    async def test_each_viewer_gets_one_event(
        self, workflow: FileWorkflow, hub: NotificationHub
    ) -> None:
        viewers = [make_viewer() for _ in range(3)]
        for viewer in viewers:
            await hub.connect(viewer)

        result = await workflow.submit_edit("primary", "x", actor_ip=None)

        for viewer in viewers:
            assert sent_events(viewer) == [
                {
                    "event": FILE_UPDATED,
                    "data": {
                        "targetKey": "primary",
                        "displayName": "Promo banner",
                        "action": "updated",
                        "timestamp": result.timestamp,
                    },
                }
            ]

    async def test_no_event_on_conflict(
        self, workflow: FileWorkflow, hub: NotificationHub
    ) -> None:
        viewer = make_viewer()
        await hub.connect(viewer)

        with pytest.raises(VersionConflictError):
            await workflow.submit_edit("primary", "x", actor_ip=None, base_version="0000000")

        assert sent_events(viewer) == []

    async def test_no_event_when_locked(
        self, workflow: FileWorkflow, hub: NotificationHub, lock_store: LockStateStore
    ) -> None:
        viewer = make_viewer()
        await hub.connect(viewer)
        await lock_store.set_locked(True, actor="admin")

        with pytest.raises(SystemLockedError):
            await workflow.submit_edit("primary", "x", actor_ip=None)

        assert sent_events(viewer) == []


class TestPostCommitEffects:
    async def test_audit_failure_does_not_fail_edit(
        self, workflow: FileWorkflow, store: FakeContentStore, hub: NotificationHub
    ) -> None:
        viewer = make_viewer()
        await hub.connect(viewer)
        workflow.audit = AsyncMock()
        workflow.audit.append.side_effect = RuntimeError("audit store down")

        result = await workflow.submit_edit("primary", "x", actor_ip=None)

        assert result.version_tag == store.current_version("primary")
        assert len(sent_events(viewer)) == 1

    async def test_notify_failure_does_not_fail_edit(
        self, workflow: FileWorkflow, store: FakeContentStore, audit_log: AuditLog
    ) -> None:
        workflow.hub = AsyncMock()
        workflow.hub.publish.side_effect = RuntimeError("hub down")

        result = await workflow.submit_edit("primary", "x", actor_ip=None)

        assert result.version_tag == store.current_version("primary")
        assert await _kinds(audit_log) == ["file-update"]


class TestOverview:
    async def test_unreachable_target_is_reported(
        self, workflow: FileWorkflow, store: FakeContentStore
    ) -> None:
        store.unavailable.add("secondary")

        views = {view.target.key: view for view in await workflow.overview()}

        assert views["primary"].connected
        assert views["primary"].snapshot is not None
        assert not views["secondary"].connected
        assert views["secondary"].error is not None

    async def test_status_includes_lock(
        self, workflow: FileWorkflow, store: FakeContentStore, lock_store: LockStateStore
    ) -> None:
        store.unavailable.add("secondary")
        await lock_store.set_locked(True, actor="admin")

        status = (await workflow.get_status()).to_dict()

        assert status["system_locked"] is True
        assert status["targets"]["primary"] == {"connected": True, "error": None}
        assert status["targets"]["secondary"]["connected"] is False
