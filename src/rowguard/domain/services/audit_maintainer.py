"""Audit column maintenance.

Keeps a last-modified attribute current on every update: a BEFORE UPDATE
row trigger runs a function that overwrites the attribute with the
transaction time. The function runs with the owner's identity and a
pinned resolution path, so a caller cannot shadow ``now()`` with a
function of their own.
"""

from typing import TYPE_CHECKING, Any

from rowguard.core.config import get_settings
from rowguard.core.logging import get_logger
from rowguard.core.triggers import TriggerEvent, TriggerTiming
from rowguard.domain.entities.stored_function import ExecutionSecurity, StoredFunction
from rowguard.domain.entities.trigger import Trigger, TriggerContext
from rowguard.domain.exceptions import UnresolvedMaintainerFunctionError

if TYPE_CHECKING:
    from rowguard.infrastructure.catalog import Catalog

logger = get_logger(__name__)


def maintainer_function_name(attribute: str) -> str:
    return f"update_{attribute}_column"


def maintainer_trigger_name(collection: str, attribute: str) -> str:
    return f"update_{collection}_{attribute}"


def build_maintainer_function(attribute: str, resolution_path: tuple[str, ...], owner: str) -> StoredFunction:
    """SECURITY DEFINER function setting ``attribute`` to the transaction time."""
    return StoredFunction(
        name=maintainer_function_name(attribute),
        assignments=((attribute, "now()"),),
        security=ExecutionSecurity.DEFINER,
        owner=owner,
        resolution_path=tuple(resolution_path),
    )


class AuditColumnMaintainer:
    """Registers and runs the audit-column trigger for collections.

    Example:
        maintainer = AuditColumnMaintainer(catalog)
        maintainer.register("items")          # update_items_updated_at
        catalog.update("items", "1", {...})   # updated_at is now()
    """

    def __init__(
        self,
        catalog: "Catalog",
        resolution_path: tuple[str, ...] | list[str] | None = None,
        owner: str | None = None,
    ) -> None:
        settings = get_settings()
        self.catalog = catalog
        self.resolution_path = tuple(resolution_path or settings.maintainer_resolution_path)
        self.owner = owner or settings.maintainer_owner

    def function_for(self, attribute: str) -> StoredFunction:
        """Build the maintainer function for an attribute."""
        return build_maintainer_function(attribute, self.resolution_path, self.owner)

    def register(self, collection: str, attribute_name: str = "updated_at") -> Trigger:
        """Attach the maintainer to a collection.

        Creates the function if it does not exist yet and a BEFORE UPDATE
        row trigger bound to it. Calling it again is a no-op.

        Raises:
            MissingCollectionError: If the collection does not exist.
        """
        trigger = Trigger(
            name=maintainer_trigger_name(collection, attribute_name),
            collection=collection,
            function_name=maintainer_function_name(attribute_name),
            timing=TriggerTiming.BEFORE,
            event=TriggerEvent.UPDATE,
        )

        with self.catalog.schema_lock:
            self.catalog.get_collection(collection)
            if self.catalog.get_function(trigger.function_name) is None:
                self.catalog.create_function(self.function_for(attribute_name))
            created = self.catalog.create_trigger(trigger)

        if created:
            logger.info(
                "Audit column maintainer registered",
                collection=collection,
                attribute=attribute_name,
                trigger=trigger.name,
            )
        return trigger

    def on_before_update(
        self,
        row: dict[str, Any],
        context: TriggerContext,
        attribute_name: str = "updated_at",
    ) -> dict[str, Any]:
        """Run the maintainer function for one row.

        Returns:
            ``row`` with the audit attribute set to the transaction time.

        Raises:
            UnresolvedMaintainerFunctionError: If the function no longer exists.
        """
        function_name = maintainer_function_name(attribute_name)
        function = self.catalog.get_function(function_name)
        if function is None:
            raise UnresolvedMaintainerFunctionError(
                maintainer_trigger_name(context.collection, attribute_name), function_name
            )

        context.new = row
        return self.catalog.executor.invoke(function, context)
