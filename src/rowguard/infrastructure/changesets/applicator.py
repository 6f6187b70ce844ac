"""Change-set application.

Applies a change-set's operations to a catalog in order and records the
outcome in the ledger. A change-set that completed on the same catalog before is not applied
again. Ledger entries are scoped by catalog identity, so applying a
change-set to one catalog says nothing about any other. A step that fails leaves the steps before it in place: the ledger
records the change-set as partial and the error says how far it got.
Re-applying a partial change-set is safe because every operation is
idempotent.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from rowguard.core.logging import LoggingContext, get_logger
from rowguard.domain.exceptions import PartialChangeSetApplicationError
from rowguard.infrastructure.catalog import Catalog
from rowguard.infrastructure.changesets.operations import ChangeSet, SchemaOperation
from rowguard.infrastructure.persistence.models.change_set import ChangeSetStatus
from rowguard.infrastructure.persistence.repositories.change_set_repository import ChangeSetRepository

logger = get_logger(__name__)


@dataclass
class ApplyResult:
    """Outcome of applying a change-set.

    Attributes:
        change_set_id: Change-set identifier.
        status: ``applied``, or ``skipped`` when the ledger already had it.
        applied_steps: Operations that ran.
        changed_steps: Descriptions of operations that changed the catalog.
    """

    change_set_id: str
    status: str
    applied_steps: int = 0
    changed_steps: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"


class ChangeSetApplicator:
    """Applies change-sets to a catalog and records them in the ledger."""

    def __init__(self, catalog: Catalog, session: AsyncSession) -> None:
        self.catalog = catalog
        self.session = session
        self.repository = ChangeSetRepository(session, catalog.catalog_id)

    async def apply(self, change_set: ChangeSet) -> ApplyResult:
        """Apply a change-set unless the ledger shows it already completed on this catalog.

        Raises:
            PartialChangeSetApplicationError: If an operation fails. The
                original error is chained as ``__cause__``.
        """
        checksum = change_set.checksum
        total = len(change_set)

        with LoggingContext(change_set_id=change_set.id, catalog_id=self.catalog.catalog_id):
            entry = await self.repository.get(change_set.id)
            if entry is not None and entry.is_complete:
                if entry.checksum != checksum:
                    logger.warning(
                        "Applied change-set has changed since it was applied",
                        recorded_checksum=entry.checksum,
                        current_checksum=checksum,
                    )
                logger.info("Change-set already applied, skipping", applied_at=str(entry.applied_at))
                return ApplyResult(change_set.id, "skipped")

            if entry is not None:
                logger.info(
                    "Resuming partially applied change-set",
                    applied_steps=entry.applied_steps,
                    total_steps=entry.total_steps,
                )

            logger.info("Applying change-set", total_steps=total, checksum=checksum)
            result = ApplyResult(change_set.id, ChangeSetStatus.APPLIED)
            failure: tuple[SchemaOperation, Exception] | None = None

            with self.catalog.schema_lock:
                for step, operation in enumerate(change_set.operations, start=1):
                    try:
                        changed = operation.apply(self.catalog)
                    except Exception as e:
                        logger.error(
                            "Change-set step failed",
                            step=step,
                            operation=operation.describe(),
                            error=str(e),
                            error_type=type(e).__name__,
                        )
                        failure = (operation, e)
                        break

                    result.applied_steps = step
                    if changed:
                        result.changed_steps.append(operation.describe())
                    logger.debug("Change-set step applied", step=step, operation=operation.describe(), changed=changed)

            if failure is not None:
                operation, error = failure
                await self.repository.record(
                    change_set.id,
                    checksum,
                    applied_steps=result.applied_steps,
                    total_steps=total,
                    status=ChangeSetStatus.PARTIAL,
                    error=f"{type(error).__name__}: {error}",
                )
                await self.session.commit()
                raise PartialChangeSetApplicationError(
                    change_set.id, result.applied_steps, total, operation.describe()
                ) from error

            await self.repository.record(change_set.id, checksum, applied_steps=total, total_steps=total)
            await self.session.commit()

            logger.info(
                "Change-set applied",
                applied_steps=total,
                changed_steps=len(result.changed_steps),
            )
            return result
