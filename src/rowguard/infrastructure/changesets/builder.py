"""Fluent change-set builder.

Accumulates the target schema state one operation at a time and produces
an immutable ChangeSet. Nothing touches a catalog until the change-set is
applied.

Example:
    change_set = (
        ChangeSetBuilder("20251025085456_fix_security_issues", "Fix security issues")
        .drop_index("idx_items_supplier")
        .drop_rule("items", "Allow all operations on items")
        .enable_access_control("app_kv")
        .create_rule("app_kv", Rule("Allow public read access on app_kv", "SELECT", using="true"))
        .rebind_maintainer(maintainer_function, ["items", "orders"])
        .build()
    )
"""

from collections.abc import Iterable

from rowguard.core.config import get_settings
from rowguard.domain.entities.index import Index, IndexUsage
from rowguard.domain.entities.rule import Rule
from rowguard.domain.entities.stored_function import StoredFunction
from rowguard.domain.entities.trigger import Trigger
from rowguard.domain.services.audit_maintainer import maintainer_trigger_name
from rowguard.domain.services.index_usage import find_unused_indexes
from rowguard.infrastructure.changesets.operations import (
    ChangeSet,
    CreateFunction,
    CreateIndex,
    CreateRule,
    CreateTrigger,
    DropFunctionCascade,
    DropIndexIfExists,
    DropRuleIfExists,
    EnableAccessControl,
    RebindFunction,
    SchemaOperation,
)


class ChangeSetBuilder:
    """Builds a ChangeSet from chained calls."""

    def __init__(self, change_set_id: str, description: str = "") -> None:
        self.change_set_id = change_set_id
        self.description = description
        self._operations: list[SchemaOperation] = []

    def add(self, operation: SchemaOperation) -> "ChangeSetBuilder":
        self._operations.append(operation)
        return self

    def drop_index(self, name: str) -> "ChangeSetBuilder":
        return self.add(DropIndexIfExists(name))

    def create_index(self, index: Index) -> "ChangeSetBuilder":
        return self.add(CreateIndex(index))

    def drop_unused_indexes(
        self,
        usages: Iterable[IndexUsage],
        min_window_days: float | None = None,
    ) -> "ChangeSetBuilder":
        """Drop every index the usage records show as unused.

        Args:
            usages: Index usage telemetry.
            min_window_days: Minimum observation window; defaults to the
                ``index_min_observation_days`` setting.
        """
        if min_window_days is None:
            min_window_days = get_settings().index_min_observation_days
        for usage in find_unused_indexes(usages, min_window_days):
            self.drop_index(usage.index_name)
        return self

    def drop_rule(self, collection: str, name: str) -> "ChangeSetBuilder":
        return self.add(DropRuleIfExists(collection, name))

    def enable_access_control(self, collection: str) -> "ChangeSetBuilder":
        return self.add(EnableAccessControl(collection))

    def create_rule(self, collection: str, rule: Rule) -> "ChangeSetBuilder":
        return self.add(CreateRule(collection, rule))

    def drop_function_cascade(self, name: str) -> "ChangeSetBuilder":
        return self.add(DropFunctionCascade(name))

    def create_function(self, function: StoredFunction) -> "ChangeSetBuilder":
        return self.add(CreateFunction(function))

    def create_trigger(self, trigger: Trigger) -> "ChangeSetBuilder":
        return self.add(CreateTrigger(trigger))

    def rebind_function(self, function: StoredFunction, triggers: Iterable[Trigger]) -> "ChangeSetBuilder":
        return self.add(RebindFunction(function, tuple(triggers)))

    def rebind_maintainer(
        self,
        function: StoredFunction,
        collections: Iterable[str],
        attribute: str = "updated_at",
    ) -> "ChangeSetBuilder":
        """Rebind an audit-column function and its BEFORE UPDATE trigger on each collection."""
        triggers = [
            Trigger(
                name=maintainer_trigger_name(collection, attribute),
                collection=collection,
                function_name=function.name,
            )
            for collection in collections
        ]
        return self.rebind_function(function, triggers)

    def build(self) -> ChangeSet:
        if not self._operations:
            raise ValueError(f"Change-set '{self.change_set_id}' has no operations")
        return ChangeSet(self.change_set_id, self.description, tuple(self._operations))
