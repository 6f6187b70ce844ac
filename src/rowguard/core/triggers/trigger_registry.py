"""Trigger registry - registration and ordered execution of row triggers.

The registry holds every trigger of a catalog and fires the ones that
match a (collection, timing, event) in name order, the way a relational
engine orders row triggers. Each BEFORE trigger receives the row produced
by the previous one.

Unlike application hooks, triggers are part of the operation: an error
in any trigger propagates and aborts the operation. Nothing is skipped.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional

from rowguard.core.logging import get_logger
from rowguard.core.triggers.trigger_events import is_before
from rowguard.domain.exceptions import DuplicateObjectError

if TYPE_CHECKING:
    from rowguard.domain.entities.trigger import Trigger, TriggerContext

logger = get_logger(__name__)

Dispatch = Callable[["Trigger", "TriggerContext"], Optional[dict[str, Any]]]


class TriggerRegistry:
    """Central trigger registration and execution engine.

    Example:
        registry = TriggerRegistry()
        registry.register(Trigger("update_items_updated_at", "items", "update_updated_at_column"))

        new_row = registry.fire("items", "BEFORE", "UPDATE", context, dispatch=executor)
    """

    def __init__(self) -> None:
        self._triggers: dict[tuple[str, str], "Trigger"] = {}

    def register(self, trigger: "Trigger") -> bool:
        """Register a trigger.

        Returns:
            True if registered, False if an identical trigger already exists.

        Raises:
            DuplicateObjectError: If a different trigger has the same name on
                the same collection.
        """
        key = (trigger.collection, trigger.name)
        existing = self._triggers.get(key)
        if existing is not None:
            if existing == trigger:
                return False
            raise DuplicateObjectError("Trigger", f"{trigger.collection}.{trigger.name}")

        self._triggers[key] = trigger
        logger.debug(
            "Trigger registered",
            trigger=trigger.name,
            collection=trigger.collection,
            function=trigger.function_name,
            condition=str(trigger.firing_condition),
        )
        return True

    def unregister(self, collection: str, name: str) -> Optional["Trigger"]:
        """Remove a trigger, returning it if it existed."""
        trigger = self._triggers.pop((collection, name), None)
        if trigger is not None:
            logger.debug("Trigger unregistered", trigger=name, collection=collection)
        return trigger

    def for_collection(
        self,
        collection: str,
        timing: str | None = None,
        event: str | None = None,
    ) -> list["Trigger"]:
        """Triggers on a collection matching the given condition, in firing order."""
        matching = [
            trigger
            for (coll, _), trigger in self._triggers.items()
            if coll == collection
            and (timing is None or trigger.timing == timing)
            and (event is None or trigger.event == event)
        ]
        return sorted(matching, key=lambda t: t.name)

    def dependents_of(self, function_name: str) -> list["Trigger"]:
        """Triggers bound to a function."""
        return sorted(
            (t for t in self._triggers.values() if t.function_name == function_name),
            key=lambda t: (t.collection, t.name),
        )

    def get_all(self) -> list["Trigger"]:
        return sorted(self._triggers.values(), key=lambda t: (t.collection, t.name))

    def get(self, collection: str, name: str) -> Optional["Trigger"]:
        return self._triggers.get((collection, name))

    def fire(
        self,
        collection: str,
        timing: str,
        event: str,
        context: "TriggerContext",
        dispatch: Dispatch,
    ) -> dict[str, Any] | None:
        """Execute the matching triggers in order.

        Args:
            collection: Collection being modified.
            timing: BEFORE or AFTER.
            event: INSERT, UPDATE or DELETE.
            context: Invocation context; ``context.new`` is updated as BEFORE
                triggers replace the row.
            dispatch: Runs one trigger and returns the (possibly replaced) row.

        Returns:
            The final new row.
        """
        triggers = self.for_collection(collection, timing, event)
        if not triggers:
            return context.new

        logger.debug(
            "Firing triggers",
            collection=collection,
            condition=f"{timing} {event}",
            trigger_count=len(triggers),
            request_id=context.request_id,
        )

        for trigger in triggers:
            try:
                result = dispatch(trigger, context)
            except Exception as e:
                logger.error(
                    "Trigger execution failed",
                    trigger=trigger.name,
                    collection=collection,
                    error=str(e),
                    request_id=context.request_id,
                )
                raise

            if is_before(timing) and isinstance(result, dict):
                context.new = result

        return context.new

    def __len__(self) -> int:
        return len(self._triggers)
