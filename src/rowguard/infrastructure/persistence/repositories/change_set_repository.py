"""Change-set ledger repository."""

from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rowguard.infrastructure.persistence.models.change_set import AppliedChangeSetModel, ChangeSetStatus


class ChangeSetRepository:
    """Repository for the applied_change_sets ledger of one catalog."""

    def __init__(self, session: AsyncSession, catalog_id: str) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
            catalog_id: Catalog whose ledger entries are read and written.
        """
        self.session = session
        self.catalog_id = catalog_id

    async def get(self, change_set_id: str) -> AppliedChangeSetModel | None:
        """Get a ledger entry by change-set ID."""
        result = await self.session.execute(
            select(AppliedChangeSetModel).where(
                AppliedChangeSetModel.catalog_id == self.catalog_id,
                AppliedChangeSetModel.change_set_id == change_set_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_applied(self, change_set_id: str) -> bool:
        """Whether the change-set completed successfully."""
        entry = await self.get(change_set_id)
        return entry is not None and entry.is_complete

    async def list_all(self) -> Sequence[AppliedChangeSetModel]:
        """All ledger entries of the catalog, oldest first."""
        result = await self.session.execute(
            select(AppliedChangeSetModel)
            .where(AppliedChangeSetModel.catalog_id == self.catalog_id)
            .order_by(AppliedChangeSetModel.applied_at, AppliedChangeSetModel.change_set_id)
        )
        return result.scalars().all()

    async def record(
        self,
        change_set_id: str,
        checksum: str,
        applied_steps: int,
        total_steps: int,
        status: str = ChangeSetStatus.APPLIED,
        error: str | None = None,
    ) -> AppliedChangeSetModel:
        """Create or update the ledger entry of a change-set.

        A partial entry is overwritten when the change-set is applied again.
        """
        entry = await self.get(change_set_id)
        if entry is None:
            entry = AppliedChangeSetModel(catalog_id=self.catalog_id, change_set_id=change_set_id)
            self.session.add(entry)

        entry.checksum = checksum
        entry.status = status
        entry.applied_steps = applied_steps
        entry.total_steps = total_steps
        entry.error = error
        entry.applied_at = datetime.now(timezone.utc)

        await self.session.flush()
        return entry
