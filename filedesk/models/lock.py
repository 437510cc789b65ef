"""System lock transition model."""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from filedesk.models.base import Base


class LockTransition(Base):
    """One admin lock/unlock action. Rows are only ever inserted."""

    __tablename__ = "lock_transitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False)
    actor: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
