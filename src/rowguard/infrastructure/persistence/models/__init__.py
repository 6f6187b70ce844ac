"""SQLAlchemy models for RowGuard system tables."""

from rowguard.infrastructure.persistence.models.change_set import (
    DATABASE_CATALOG_ID,
    AppliedChangeSetModel,
    ChangeSetStatus,
)

__all__ = [
    "AppliedChangeSetModel",
    "ChangeSetStatus",
    "DATABASE_CATALOG_ID",
]
