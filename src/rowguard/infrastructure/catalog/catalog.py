"""In-memory catalog of collections, rules, functions, triggers and rows.

The catalog models the schema objects a change-set manipulates and routes
every row operation through the Policy Resolver and the collection's
triggers, in the order a relational engine applies them:

    INSERT: check predicate -> BEFORE INSERT triggers -> persist -> AFTER
    UPDATE: using(old) + check(new) -> BEFORE UPDATE triggers -> persist -> AFTER
    DELETE: using(old) -> BEFORE DELETE triggers -> remove -> AFTER

Schema changes and row operations take the same re-entrant lock, so a
change-set holding it is exclusive with respect to everything else.
"""

import copy
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from rowguard.core.config import get_settings
from rowguard.core.logging import get_logger
from rowguard.core.rules import FunctionResolver, Namespace, builtin_namespace
from rowguard.core.rules.functions import BUILTIN_NAMESPACE, DEFAULT_NAMESPACE
from rowguard.core.triggers import TriggerEvent, TriggerRegistry, TriggerTiming
from rowguard.domain.entities.collection import ResourceCollection
from rowguard.domain.entities.decision import DeniedStage, PolicyDecision
from rowguard.domain.entities.index import Index
from rowguard.domain.entities.rule import Operation, Rule
from rowguard.domain.entities.session import ActorContext, TransactionContext
from rowguard.domain.entities.stored_function import StoredFunction
from rowguard.domain.entities.trigger import Trigger, TriggerContext
from rowguard.domain.exceptions import (
    ConfigurationError,
    DependentObjectsError,
    DuplicateObjectError,
    MissingCollectionError,
    PolicyViolationError,
    UnresolvedMaintainerFunctionError,
)
from rowguard.domain.services.function_executor import FunctionExecutor
from rowguard.domain.services.policy_resolver import PolicyResolver

logger = get_logger(__name__)

# Rule predicates bind their function calls when the rule is created, so
# they never see the caller's search path.
POLICY_RESOLUTION_PATH = (BUILTIN_NAMESPACE, DEFAULT_NAMESPACE)

TriggerBinding = tuple[str, str, str, str, str]


class Catalog:
    """Schema objects and rows of one data store.

    ``catalog_id`` identifies the data store across snapshots; the change-set
    ledger is keyed by it. A new catalog gets a fresh random id.
    """

    def __init__(self, allow_unprotected_access: bool | None = None, catalog_id: str | None = None) -> None:
        self.catalog_id = catalog_id or uuid.uuid4().hex
        if allow_unprotected_access is None:
            allow_unprotected_access = get_settings().allow_unprotected_access
        self.allow_unprotected_access = allow_unprotected_access

        self.schema_lock = threading.RLock()
        self.collections: dict[str, ResourceCollection] = {}
        self.rows: dict[str, dict[str, dict[str, Any]]] = {}
        self.indexes: dict[str, Index] = {}
        self.functions: dict[str, StoredFunction] = {}
        self.namespaces: dict[str, Namespace] = {
            BUILTIN_NAMESPACE: builtin_namespace(),
            DEFAULT_NAMESPACE: Namespace(DEFAULT_NAMESPACE),
        }
        self.triggers = TriggerRegistry()
        self.resolver = PolicyResolver(FunctionResolver(self.namespaces, POLICY_RESOLUTION_PATH))
        self.executor = FunctionExecutor(self.namespaces)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def create_collection(
        self,
        name: str,
        columns: tuple[str, ...] | list[str] = (),
        access_sensitive: bool = True,
    ) -> ResourceCollection:
        """Create a collection, or return it if it already exists with the same columns.

        Raises:
            DuplicateObjectError: If it exists with different columns.
        """
        with self.schema_lock:
            existing = self.collections.get(name)
            if existing is not None:
                if existing.columns != tuple(columns):
                    raise DuplicateObjectError("Collection", name)
                return existing

            collection = ResourceCollection(name=name, columns=tuple(columns), access_sensitive=access_sensitive)
            self.collections[name] = collection
            self.rows[name] = {}
            logger.info("Collection created", collection=name, access_sensitive=access_sensitive)
            return collection

    def get_collection(self, name: str) -> ResourceCollection:
        """Raises MissingCollectionError if the collection does not exist."""
        collection = self.collections.get(name)
        if collection is None:
            raise MissingCollectionError(name)
        return collection

    def has_collection(self, name: str) -> bool:
        return name in self.collections

    def list_collections(self) -> list[ResourceCollection]:
        return [self.collections[name] for name in sorted(self.collections)]

    def enable_access_control(self, name: str) -> bool:
        """Enable access control; returns False if it was already enabled."""
        with self.schema_lock:
            collection = self.get_collection(name)
            if collection.access_control_enabled:
                return False
            collection.access_control_enabled = True
            logger.info("Access control enabled", collection=name, rule_count=len(collection.rules))
            return True

    def disable_access_control(self, name: str) -> bool:
        """Disable access control; returns False if it was already disabled."""
        with self.schema_lock:
            collection = self.get_collection(name)
            if not collection.access_control_enabled:
                return False
            collection.access_control_enabled = False
            logger.warning("Access control disabled", collection=name)
            return True

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(self, collection_name: str, rule: Rule, allow_ambiguous: bool = False) -> bool:
        """Attach a rule to a collection.

        Returns:
            True if created, False if an identical rule already exists.

        Raises:
            MissingCollectionError: If the collection does not exist.
            DuplicateObjectError: If a different rule has the same name.
            AmbiguousRulePairError: If the rule would create an ALL/specific pair.
        """
        with self.schema_lock:
            collection = self.get_collection(collection_name)
            existing = collection.rules.get(rule.name)
            if existing is not None:
                if existing == rule:
                    return False
                raise DuplicateObjectError("Rule", f"{collection_name}.{rule.name}")

            collection.add_rule(rule, allow_ambiguous=allow_ambiguous)
            logger.info(
                "Rule created",
                collection=collection_name,
                rule=rule.name,
                scope=rule.scope.value,
                roles=list(rule.roles),
            )
            return True

    def drop_rule(self, collection_name: str, rule_name: str) -> bool:
        """Drop a rule if it exists; returns whether anything was dropped."""
        with self.schema_lock:
            collection = self.get_collection(collection_name)
            removed = collection.remove_rule(rule_name)
            if removed is None:
                logger.debug("Rule does not exist, skipping", collection=collection_name, rule=rule_name)
                return False
            logger.info("Rule dropped", collection=collection_name, rule=rule_name, scope=removed.scope.value)
            return True

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def create_index(self, index: Index) -> bool:
        with self.schema_lock:
            self.get_collection(index.collection)
            existing = self.indexes.get(index.name)
            if existing is not None:
                if existing == index:
                    return False
                raise DuplicateObjectError("Index", index.name)
            self.indexes[index.name] = index
            logger.info("Index created", index=index.name, collection=index.collection)
            return True

    def drop_index(self, name: str) -> Index | None:
        """Drop an index if it exists, returning its definition."""
        with self.schema_lock:
            index = self.indexes.pop(name, None)
            if index is None:
                logger.debug("Index does not exist, skipping", index=name)
            else:
                logger.info("Index dropped", index=name, collection=index.collection)
            return index

    # ------------------------------------------------------------------
    # Namespaces and functions
    # ------------------------------------------------------------------

    def create_schema(self, name: str) -> Namespace:
        with self.schema_lock:
            namespace = self.namespaces.get(name)
            if namespace is None:
                namespace = Namespace(name)
                self.namespaces[name] = namespace
                logger.info("Schema created", schema=name)
            return namespace

    def create_scalar_function(self, schema: str, name: str, impl: Callable[..., Any]) -> None:
        """Define a scalar function callable from predicates and function bodies."""
        with self.schema_lock:
            namespace = self.namespaces.get(schema)
            if namespace is None:
                raise ConfigurationError(f"Schema '{schema}' does not exist")
            namespace.define(name, impl)
            logger.info("Scalar function created", function=f"{schema}.{name}")

    def get_function(self, name: str) -> StoredFunction | None:
        return self.functions.get(name)

    def list_functions(self) -> list[StoredFunction]:
        return [self.functions[name] for name in sorted(self.functions)]

    def create_function(self, function: StoredFunction, replace: bool = True) -> bool:
        """Create or replace a trigger function.

        Returns:
            False if an identical function already exists.

        Raises:
            DuplicateObjectError: If a different function exists and
                ``replace`` is False.
        """
        with self.schema_lock:
            existing = self.functions.get(function.name)
            if existing == function:
                return False
            if existing is not None and not replace:
                raise DuplicateObjectError("Function", function.name)
            self.functions[function.name] = function
            logger.info(
                "Function created" if existing is None else "Function replaced",
                function=function.name,
                security=function.security.value,
                pinned=function.is_pinned,
            )
            return True

    def drop_function(self, name: str, cascade: bool = False) -> list[Trigger]:
        """Drop a function if it exists.

        Returns:
            Triggers dropped along with the function.

        Raises:
            DependentObjectsError: If triggers depend on it and ``cascade`` is False.
        """
        with self.schema_lock:
            if name not in self.functions:
                logger.debug("Function does not exist, skipping", function=name)
                return []

            dependents = self.triggers.dependents_of(name)
            if dependents and not cascade:
                raise DependentObjectsError(name, [f"{t.collection}.{t.name}" for t in dependents])

            for trigger in dependents:
                self.triggers.unregister(trigger.collection, trigger.name)
            del self.functions[name]

            logger.info(
                "Function dropped",
                function=name,
                cascade=cascade,
                dropped_triggers=[t.name for t in dependents],
            )
            return dependents

    def dependents_of(self, function_name: str) -> list[Trigger]:
        return self.triggers.dependents_of(function_name)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def create_trigger(self, trigger: Trigger, require_function: bool = True) -> bool:
        """Attach a trigger to a collection.

        Raises:
            MissingCollectionError: If the collection does not exist.
            UnresolvedMaintainerFunctionError: If the function does not exist
                and ``require_function`` is set.
        """
        with self.schema_lock:
            self.get_collection(trigger.collection)
            if require_function and trigger.function_name not in self.functions:
                raise UnresolvedMaintainerFunctionError(trigger.name, trigger.function_name)
            created = self.triggers.register(trigger)
            if created:
                logger.info(
                    "Trigger created",
                    trigger=trigger.name,
                    collection=trigger.collection,
                    function=trigger.function_name,
                )
            return created

    def drop_trigger(self, collection: str, name: str) -> bool:
        with self.schema_lock:
            return self.triggers.unregister(collection, name) is not None

    def trigger_bindings(self) -> list[TriggerBinding]:
        """(collection, trigger, timing, event, function) for every trigger."""
        return [
            (t.collection, t.name, t.timing, t.event, t.function_name)
            for t in self.triggers.get_all()
        ]

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[TransactionContext]:
        """Run several row operations with one transaction time."""
        tx = TransactionContext()
        with self.schema_lock:
            logger.debug("Transaction started", transaction_id=tx.transaction_id)
            yield tx

    def _guard(self, collection: ResourceCollection, operation: Operation, actor: ActorContext) -> bool:
        """Whether rules govern ``operation`` on the collection.

        Runs once per statement, before any row is looked up, so an
        unprotected or ambiguous collection is refused even when no row
        matches.

        Raises:
            AccessControlDisabledError: If the collection is access-sensitive,
                has access control off and unprotected access is not allowed.
            AmbiguousRulePairError: If ALL-scoped and specific rules both match.
        """
        if not collection.access_control_enabled:
            if not collection.access_sensitive:
                return False
            if self.allow_unprotected_access:
                logger.warning(
                    "Accessing collection without access control",
                    collection=collection.name,
                    operation=operation.value,
                    actor=actor.actor_id,
                )
                return False
        self.resolver.check_configuration(collection, operation, actor)
        return True

    def _decide(
        self,
        collection: ResourceCollection,
        operation: Operation,
        actor: ActorContext,
        tx: TransactionContext,
        row: dict[str, Any] | None = None,
        new_row: dict[str, Any] | None = None,
    ) -> PolicyDecision:
        return self.resolver.evaluate(collection, operation, actor, row=row, new_row=new_row, transaction=tx)

    def _fire(
        self,
        collection: str,
        timing: str,
        event: str,
        actor: ActorContext,
        tx: TransactionContext,
        new: dict[str, Any] | None,
        old: dict[str, Any] | None,
    ) -> dict[str, Any] | None:
        context = TriggerContext(
            collection=collection,
            timing=timing,
            event=event,
            actor=actor,
            transaction=tx,
            new=new,
            old=old,
        )
        return self.triggers.fire(collection, timing, event, context, self._dispatch)

    def _dispatch(self, trigger: Trigger, context: TriggerContext) -> dict[str, Any]:
        function = self.functions.get(trigger.function_name)
        if function is None:
            raise UnresolvedMaintainerFunctionError(trigger.name, trigger.function_name)
        return self.executor.invoke(function, context)

    def insert(
        self,
        collection_name: str,
        row: dict[str, Any],
        actor: ActorContext,
        transaction: TransactionContext | None = None,
    ) -> dict[str, Any]:
        """Insert a row and return it as persisted.

        Raises:
            PolicyViolationError: If no INSERT rule's check holds on the row.
        """
        tx = transaction or TransactionContext()
        with self.schema_lock:
            collection = self.get_collection(collection_name)
            restricted = self._guard(collection, Operation.INSERT, actor)
            new_row = dict(row)
            new_row.setdefault("id", uuid.uuid4().hex)
            if new_row["id"] in self.rows[collection_name]:
                raise DuplicateObjectError("Row", f"{collection_name}.{new_row['id']}")

            if restricted:
                decision = self._decide(collection, Operation.INSERT, actor, tx, new_row=new_row)
                if not decision.allowed:
                    raise PolicyViolationError(collection_name, Operation.INSERT.value, decision.reason)

            new_row = self._fire(
                collection_name, TriggerTiming.BEFORE, TriggerEvent.INSERT, actor, tx, new_row, None
            )
            self.rows[collection_name][new_row["id"]] = new_row
            self._fire(
                collection_name, TriggerTiming.AFTER, TriggerEvent.INSERT, actor, tx, dict(new_row), None
            )
            logger.debug("Row inserted", collection=collection_name, row_id=new_row["id"], actor=actor.actor_id)
            return copy.deepcopy(new_row)

    def select(
        self,
        collection_name: str,
        actor: ActorContext,
        where: dict[str, Any] | None = None,
        transaction: TransactionContext | None = None,
    ) -> list[dict[str, Any]]:
        """Rows visible to the actor, optionally filtered by equality on columns."""
        tx = transaction or TransactionContext()
        with self.schema_lock:
            collection = self.get_collection(collection_name)
            restricted = self._guard(collection, Operation.SELECT, actor)
            visible = []
            for row in self.rows[collection_name].values():
                if where and any(row.get(key) != value for key, value in where.items()):
                    continue
                if not restricted or self._decide(collection, Operation.SELECT, actor, tx, row=row).allowed:
                    visible.append(copy.deepcopy(row))
            return visible

    def update(
        self,
        collection_name: str,
        row_id: str,
        changes: dict[str, Any],
        actor: ActorContext,
        transaction: TransactionContext | None = None,
    ) -> dict[str, Any] | None:
        """Update one row and return it as persisted.

        Returns:
            None if the row does not exist or is not visible to the actor.

        Raises:
            PolicyViolationError: If the new row fails every visible rule's check.
            UnresolvedMaintainerFunctionError: If a BEFORE UPDATE trigger's
                function is missing.
        """
        tx = transaction or TransactionContext()
        with self.schema_lock:
            collection = self.get_collection(collection_name)
            restricted = self._guard(collection, Operation.UPDATE, actor)
            old_row = self.rows[collection_name].get(row_id)
            if old_row is None:
                return None

            new_row = {**old_row, **changes, "id": row_id}
            if restricted:
                decision = self._decide(collection, Operation.UPDATE, actor, tx, row=old_row, new_row=new_row)
                if not decision.allowed:
                    if decision.denied_stage is DeniedStage.CHECK:
                        raise PolicyViolationError(collection_name, Operation.UPDATE.value, decision.reason)
                    logger.debug("Row not visible for update", collection=collection_name, row_id=row_id)
                    return None

            new_row = self._fire(
                collection_name,
                TriggerTiming.BEFORE,
                TriggerEvent.UPDATE,
                actor,
                tx,
                new_row,
                copy.deepcopy(old_row),
            )
            self.rows[collection_name][row_id] = new_row
            self._fire(
                collection_name,
                TriggerTiming.AFTER,
                TriggerEvent.UPDATE,
                actor,
                tx,
                dict(new_row),
                copy.deepcopy(old_row),
            )
            logger.debug("Row updated", collection=collection_name, row_id=row_id, actor=actor.actor_id)
            return copy.deepcopy(new_row)

    def delete(
        self,
        collection_name: str,
        row_id: str,
        actor: ActorContext,
        transaction: TransactionContext | None = None,
    ) -> bool:
        """Delete one row; False if it does not exist or is not visible."""
        tx = transaction or TransactionContext()
        with self.schema_lock:
            collection = self.get_collection(collection_name)
            restricted = self._guard(collection, Operation.DELETE, actor)
            old_row = self.rows[collection_name].get(row_id)
            if old_row is None:
                return False

            if restricted and not self._decide(collection, Operation.DELETE, actor, tx, row=old_row).allowed:
                return False

            self._fire(collection_name, TriggerTiming.BEFORE, TriggerEvent.DELETE, actor, tx, None, old_row)
            del self.rows[collection_name][row_id]
            self._fire(collection_name, TriggerTiming.AFTER, TriggerEvent.DELETE, actor, tx, None, old_row)
            logger.debug("Row deleted", collection=collection_name, row_id=row_id, actor=actor.actor_id)
            return True
