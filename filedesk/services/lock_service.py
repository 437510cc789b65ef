"""System lock: a cached boolean backed by an append-only transition log."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select

from filedesk.models.lock import LockTransition
from filedesk.services.datetime_service import format_iso, now_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockState:
    """Current lock flag plus who last changed it, and when."""

    locked: bool
    changed_by: str | None = None
    changed_at: str | None = None


class LockStateStore:
    """Holds the process-wide lock flag.

    ``current()`` never awaits. ``set_locked()`` persists the transition
    first and only then swaps the cached state, so readers never observe a
    flag that was not committed. Writers are serialised by an asyncio lock.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._state = LockState(locked=False)
        self._write_lock = asyncio.Lock()

    async def load(self) -> LockState:
        """Initialise the cache from the newest persisted transition."""
        async with self._session_factory() as session:
            stmt = select(LockTransition).order_by(LockTransition.id.desc()).limit(1)
            result = await session.execute(stmt)
            latest = result.scalar_one_or_none()
        if latest is None:
            self._state = LockState(locked=False)
        else:
            self._state = LockState(
                locked=latest.locked,
                changed_by=latest.actor,
                changed_at=latest.created_at,
            )
        logger.info("Loaded system lock state: locked=%s", self._state.locked)
        return self._state

    def current(self) -> bool:
        return self._state.locked

    @property
    def state(self) -> LockState:
        return self._state

    async def set_locked(self, locked: bool, actor: str) -> LockState:
        """Append a transition record, then update the cached flag.

        Every call is recorded, including one that does not change the flag.
        Persistence errors propagate and leave the cache untouched.
        """
        async with self._write_lock:
            created_at = format_iso(now_utc())
            async with self._session_factory() as session:
                session.add(LockTransition(locked=locked, actor=actor, created_at=created_at))
                await session.commit()
            self._state = LockState(locked=locked, changed_by=actor, changed_at=created_at)
        logger.info("System %s by %s", "locked" if locked else "unlocked", actor)
        return self._state

    async def history(self, limit: int = 50) -> list[LockTransition]:
        """Return the newest transitions first."""
        async with self._session_factory() as session:
            stmt = select(LockTransition).order_by(LockTransition.id.desc()).limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())
