"""SQLAlchemy ORM models for FileDesk."""

from filedesk.models.audit import AuditRecord
from filedesk.models.base import Base
from filedesk.models.lock import LockTransition

__all__ = [
    "AuditRecord",
    "Base",
    "LockTransition",
]
