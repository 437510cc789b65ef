"""Shared test fixtures for FileDesk."""

from __future__ import annotations

import hashlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from filedesk.config import Settings, TargetConfig
from filedesk.database import create_engine, ensure_sqlite_dir
from filedesk.exceptions import RemoteNotFoundError, RemoteUnavailableError, VersionConflictError
from filedesk.github.base import FileSnapshot, HistoryEntry
from filedesk.main import create_app, init_state
from filedesk.models.base import Base
from filedesk.services.audit_service import AuditLog
from filedesk.services.file_service import FileWorkflow
from filedesk.services.lock_service import LockStateStore
from filedesk.services.notification_service import NotificationHub

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from filedesk.github.base import TargetDescriptor

logger = logging.getLogger(__name__)

TEST_SECRET_KEY = "test-secret-key-with-at-least-32-characters"
TEST_ADMIN_PASSWORD = "admin-password-123"

_EPOCH = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


@dataclass
class _Revision:
    version: str
    content: bytes
    message: str
    date: datetime


@dataclass
class WriteCall:
    key: str
    content: bytes
    expected_version: str
    message: str


@dataclass
class FakeContentStore:
    """In-memory versioned store that enforces the conditional-write contract."""

    revisions: dict[str, list[_Revision]] = field(default_factory=dict)
    writes: list[WriteCall] = field(default_factory=list)
    unavailable: set[str] = field(default_factory=set)
    _counter: int = 0

    def _next_version(self) -> str:
        self._counter += 1
        return hashlib.sha1(str(self._counter).encode()).hexdigest()

    def seed(self, key: str, content: bytes, version: str | None = None) -> str:
        """Add a revision without going through ``write``. Returns its version."""
        history = self.revisions.setdefault(key, [])
        tag = version or self._next_version()
        date = _EPOCH + timedelta(minutes=len(history))
        history.append(_Revision(tag, content, f"Seed {key}", date))
        return tag

    def current_version(self, key: str) -> str:
        return self.revisions[key][-1].version

    def current_content(self, key: str) -> bytes:
        return self.revisions[key][-1].content

    def _history(self, target: TargetDescriptor) -> list[_Revision]:
        if target.key in self.unavailable:
            msg = f"Could not reach GitHub for {target.display_name}"
            raise RemoteUnavailableError(msg)
        history = self.revisions.get(target.key)
        if not history:
            msg = f"{target.display_name}: file not found"
            raise RemoteNotFoundError(msg)
        return history

    async def fetch_current(self, target: TargetDescriptor) -> FileSnapshot:
        latest = self._history(target)[-1]
        return FileSnapshot(
            content=latest.content,
            version_tag=latest.version,
            last_modified=latest.date,
        )

    async def fetch_history(
        self, target: TargetDescriptor, page: int, page_size: int
    ) -> list[HistoryEntry]:
        newest_first = list(reversed(self._history(target)))
        start = (page - 1) * page_size
        return [
            HistoryEntry(
                version_id=rev.version,
                message=rev.message,
                author="tester",
                date=rev.date,
            )
            for rev in newest_first[start : start + page_size]
        ]

    async def fetch_content_at_version(self, target: TargetDescriptor, version_id: str) -> bytes:
        for rev in self._history(target):
            if rev.version == version_id:
                return rev.content
        msg = f"Unknown version {version_id!r}"
        raise RemoteNotFoundError(msg)

    async def write(
        self,
        target: TargetDescriptor,
        content: bytes,
        expected_version: str,
        message: str,
    ) -> str:
        history = self._history(target)
        self.writes.append(WriteCall(target.key, content, expected_version, message))
        if history[-1].version != expected_version:
            msg = f"{target.display_name} was changed by someone else"
            raise VersionConflictError(msg)
        tag = self._next_version()
        history.append(
            _Revision(tag, content, message, history[-1].date + timedelta(minutes=1))
        )
        return tag


def make_viewer(*, fail: bool = False) -> AsyncMock:
    """A stand-in websocket session that records sent messages."""
    websocket = AsyncMock()
    if fail:
        websocket.send_json.side_effect = RuntimeError("connection closed")
    return websocket


def sent_events(websocket: AsyncMock) -> list[dict[str, object]]:
    return [call.args[0] for call in websocket.send_json.await_args_list]


@asynccontextmanager
async def create_test_client(
    settings: Settings, store: FakeContentStore
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Runs the lifespan's initialisation by hand because ASGITransport does not
    trigger it, substituting ``store`` for the GitHub client.
    """
    app = create_app(settings)
    settings.validate_runtime_security()
    await init_state(app, store=store)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await app.state.engine.dispose()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary database and two targets."""
    db_path = tmp_path / "db" / "test.db"
    return Settings(
        secret_key=TEST_SECRET_KEY,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        admin_password=TEST_ADMIN_PASSWORD,
        targets={
            "primary": TargetConfig(
                repo="acme/site", path="data/promo.json", token="tok-1", name="Promo banner"
            ),
            "secondary": TargetConfig(
                repo="acme/site", path="data/menu.json", token="tok-2", name="Menu"
            ),
        },
    )


@pytest.fixture
def store() -> FakeContentStore:
    """A fake store seeded with one revision per configured target."""
    fake = FakeContentStore()
    fake.seed("primary", b'{"banner": "hello"}', version="abc123")
    fake.seed("secondary", b'{"items": []}')
    return fake


@pytest.fixture
async def session_factory(
    test_settings: Settings,
) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Session factory over a freshly created schema."""
    ensure_sqlite_dir(test_settings.database_url)
    engine, factory = create_engine(test_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest.fixture
async def lock_store(session_factory: async_sessionmaker[AsyncSession]) -> LockStateStore:
    lock = LockStateStore(session_factory)
    await lock.load()
    return lock


@pytest.fixture
def audit_log(session_factory: async_sessionmaker[AsyncSession]) -> AuditLog:
    return AuditLog(session_factory)


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def workflow(
    test_settings: Settings,
    store: FakeContentStore,
    lock_store: LockStateStore,
    audit_log: AuditLog,
    hub: NotificationHub,
) -> FileWorkflow:
    return FileWorkflow(test_settings.resolve_targets(), store, lock_store, audit_log, hub)


@pytest.fixture
async def client(
    test_settings: Settings, store: FakeContentStore
) -> AsyncGenerator[AsyncClient]:
    """Create test HTTP client."""
    async with create_test_client(test_settings, store) as ac:
        yield ac


async def login(client: AsyncClient, password: str = TEST_ADMIN_PASSWORD) -> str:
    """Log in as admin and return the bearer token."""
    resp = await client.post("/api/admin/login", json={"password": password})
    assert resp.status_code == 200, resp.text
    return str(resp.json()["access_token"])


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
