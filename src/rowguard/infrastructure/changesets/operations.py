"""Change-set operations.

Each operation is an immutable description of one schema change and is
idempotent on its own: applying it to a catalog that already has the
target state changes nothing. ``apply`` returns whether the catalog
changed.

``RebindFunction`` is the composite drop-function/recreate-triggers unit.
It runs under one hold of the schema lock, so no operation can observe the
window in which the triggers are gone.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rowguard.core.logging import get_logger
from rowguard.domain.entities.index import Index
from rowguard.domain.entities.rule import Rule
from rowguard.domain.entities.stored_function import StoredFunction
from rowguard.domain.entities.trigger import Trigger
from rowguard.domain.exceptions import DependentObjectsError, DuplicateObjectError

if TYPE_CHECKING:
    from rowguard.infrastructure.catalog import Catalog

logger = get_logger(__name__)


def _rule_fields(rule: Rule) -> dict[str, Any]:
    return {
        "name": rule.name,
        "scope": rule.scope.value,
        "using": rule.using,
        "check": rule.check,
        "roles": list(rule.roles),
    }


def _function_fields(function: StoredFunction) -> dict[str, Any]:
    return {
        "name": function.name,
        "assignments": [list(pair) for pair in function.assignments],
        "security": function.security.value,
        "owner": function.owner,
        "resolution_path": list(function.resolution_path) if function.resolution_path is not None else None,
        "language": function.language,
    }


def _trigger_fields(trigger: Trigger) -> dict[str, Any]:
    return {
        "name": trigger.name,
        "collection": trigger.collection,
        "function": trigger.function_name,
        "timing": trigger.timing,
        "event": trigger.event,
    }


class SchemaOperation:
    """Base class for change-set operations."""

    def apply(self, catalog: "Catalog") -> bool:
        raise NotImplementedError

    def fingerprint(self) -> dict[str, Any]:
        """Stable description of the operation, used for checksums."""
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class DropIndexIfExists(SchemaOperation):
    name: str

    def apply(self, catalog: "Catalog") -> bool:
        return catalog.drop_index(self.name) is not None

    def fingerprint(self) -> dict[str, Any]:
        return {"op": "drop_index", "name": self.name}

    def describe(self) -> str:
        return f"drop index {self.name}"


@dataclass(frozen=True)
class CreateIndex(SchemaOperation):
    index: Index

    def apply(self, catalog: "Catalog") -> bool:
        return catalog.create_index(self.index)

    def fingerprint(self) -> dict[str, Any]:
        return {
            "op": "create_index",
            "name": self.index.name,
            "collection": self.index.collection,
            "columns": list(self.index.columns),
            "method": self.index.method,
        }

    def describe(self) -> str:
        return f"create index {self.index.name} on {self.index.collection}"


@dataclass(frozen=True)
class DropRuleIfExists(SchemaOperation):
    collection: str
    name: str

    def apply(self, catalog: "Catalog") -> bool:
        return catalog.drop_rule(self.collection, self.name)

    def fingerprint(self) -> dict[str, Any]:
        return {"op": "drop_rule", "collection": self.collection, "name": self.name}

    def describe(self) -> str:
        return f"drop rule '{self.name}' on {self.collection}"


@dataclass(frozen=True)
class EnableAccessControl(SchemaOperation):
    collection: str

    def apply(self, catalog: "Catalog") -> bool:
        return catalog.enable_access_control(self.collection)

    def fingerprint(self) -> dict[str, Any]:
        return {"op": "enable_access_control", "collection": self.collection}

    def describe(self) -> str:
        return f"enable access control on {self.collection}"


@dataclass(frozen=True)
class CreateRule(SchemaOperation):
    collection: str
    rule: Rule

    def apply(self, catalog: "Catalog") -> bool:
        return catalog.create_rule(self.collection, self.rule)

    def fingerprint(self) -> dict[str, Any]:
        return {"op": "create_rule", "collection": self.collection, **_rule_fields(self.rule)}

    def describe(self) -> str:
        return f"create {self.rule.scope.value} rule '{self.rule.name}' on {self.collection}"


@dataclass(frozen=True)
class DropFunctionCascade(SchemaOperation):
    name: str

    def apply(self, catalog: "Catalog") -> bool:
        if catalog.get_function(self.name) is None:
            return False
        catalog.drop_function(self.name, cascade=True)
        return True

    def fingerprint(self) -> dict[str, Any]:
        return {"op": "drop_function", "name": self.name, "cascade": True}

    def describe(self) -> str:
        return f"drop function {self.name} cascade"


@dataclass(frozen=True)
class CreateFunction(SchemaOperation):
    function: StoredFunction

    def apply(self, catalog: "Catalog") -> bool:
        return catalog.create_function(self.function, replace=True)

    def fingerprint(self) -> dict[str, Any]:
        return {"op": "create_function", **_function_fields(self.function)}

    def describe(self) -> str:
        return f"create function {self.function.name}"


@dataclass(frozen=True)
class CreateTrigger(SchemaOperation):
    trigger: Trigger

    def apply(self, catalog: "Catalog") -> bool:
        return catalog.create_trigger(self.trigger)

    def fingerprint(self) -> dict[str, Any]:
        return {"op": "create_trigger", **_trigger_fields(self.trigger)}

    def describe(self) -> str:
        return f"create trigger {self.trigger.name} on {self.trigger.collection}"


@dataclass(frozen=True)
class RebindFunction(SchemaOperation):
    """Replace a trigger function and recreate every trigger bound to it.

    Attributes:
        function: The new function definition.
        triggers: Complete list of triggers that must be bound to it afterwards.
    """

    function: StoredFunction
    triggers: tuple[Trigger, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "triggers", tuple(self.triggers))
        for trigger in self.triggers:
            if trigger.function_name != self.function.name:
                raise ValueError(
                    f"Trigger '{trigger.name}' is bound to '{trigger.function_name}', "
                    f"not '{self.function.name}'"
                )

    def _is_current(self, catalog: "Catalog") -> bool:
        if catalog.get_function(self.function.name) != self.function:
            return False
        current = {(t.collection, t.name): t for t in catalog.dependents_of(self.function.name)}
        wanted = {(t.collection, t.name): t for t in self.triggers}
        return current == wanted

    def _preflight(self, catalog: "Catalog") -> None:
        """Reject the rebind before anything is dropped."""
        wanted = {(t.collection, t.name) for t in self.triggers}
        orphaned = [
            f"{t.collection}.{t.name}"
            for t in catalog.dependents_of(self.function.name)
            if (t.collection, t.name) not in wanted
        ]
        if orphaned:
            raise DependentObjectsError(self.function.name, orphaned)

        for trigger in self.triggers:
            catalog.get_collection(trigger.collection)
            existing = catalog.triggers.get(trigger.collection, trigger.name)
            if existing is not None and existing.function_name != self.function.name:
                raise DuplicateObjectError("Trigger", f"{trigger.collection}.{trigger.name}")

    def apply(self, catalog: "Catalog") -> bool:
        with catalog.schema_lock:
            if self._is_current(catalog):
                return False

            self._preflight(catalog)
            dropped = catalog.drop_function(self.function.name, cascade=True)
            catalog.create_function(self.function)
            for trigger in self.triggers:
                catalog.create_trigger(trigger)

            logger.info(
                "Function rebound",
                function=self.function.name,
                dropped_triggers=len(dropped),
                recreated_triggers=len(self.triggers),
            )
            return True

    def fingerprint(self) -> dict[str, Any]:
        return {
            "op": "rebind_function",
            **_function_fields(self.function),
            "triggers": [_trigger_fields(t) for t in self.triggers],
        }

    def describe(self) -> str:
        return f"rebind function {self.function.name} ({len(self.triggers)} triggers)"


@dataclass(frozen=True)
class ChangeSet:
    """An ordered list of operations applied as a unit and recorded once.

    Attributes:
        id: Unique, sortable identifier (timestamp prefix plus a name).
        description: What the change-set fixes.
        operations: Operations in application order.
    """

    id: str
    description: str
    operations: tuple[SchemaOperation, ...]

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Change-set id is required")
        object.__setattr__(self, "operations", tuple(self.operations))

    @property
    def checksum(self) -> str:
        """SHA-256 over the operations; any change to them changes the checksum."""
        payload = json.dumps([op.fingerprint() for op in self.operations], sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def __len__(self) -> int:
        return len(self.operations)
