"""SQLAlchemy model for the applied_change_sets ledger table."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rowguard.infrastructure.persistence.database import Base


class ChangeSetStatus:
    """Ledger status values."""

    APPLIED = "applied"
    PARTIAL = "partial"


# Ledger scope of change-sets applied to the database itself by migrations.
DATABASE_CATALOG_ID = "database"


class AppliedChangeSetModel(Base):
    """A change-set that has been applied (or partially applied) to one catalog.

    Attributes:
        catalog_id: Identity of the catalog the change-set was applied to.
        change_set_id: Change-set identifier, e.g. ``20251025085456_fix_security_issues``.
        checksum: Checksum of the change-set operations when applied.
        status: ``applied`` or ``partial``.
        applied_steps: Number of operations that completed.
        total_steps: Number of operations in the change-set.
        applied_at: When the change-set was recorded (UTC).
        error: Error message of the failing step for partial applications.
    """

    __tablename__ = "applied_change_sets"

    catalog_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Catalog the change-set was applied to",
    )
    change_set_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Change-set identifier",
    )
    checksum: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of the change-set operations",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ChangeSetStatus.APPLIED,
        comment="applied or partial",
    )
    applied_steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_complete(self) -> bool:
        return self.status == ChangeSetStatus.APPLIED

    def __repr__(self) -> str:
        return (
            f"<AppliedChangeSet(catalog_id={self.catalog_id}, change_set_id={self.change_set_id}, "
            f"status={self.status}, steps={self.applied_steps}/{self.total_steps})>"
        )
