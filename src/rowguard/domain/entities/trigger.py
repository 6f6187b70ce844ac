"""Trigger entity and trigger execution context."""

import uuid
from dataclasses import dataclass, field
from typing import Any

from rowguard.core.triggers.trigger_events import TriggerEvent, TriggerTiming
from rowguard.domain.entities.session import ActorContext, TransactionContext


@dataclass(frozen=True)
class FiringCondition:
    """When a trigger fires, e.g. BEFORE UPDATE."""

    timing: str
    event: str

    def __str__(self) -> str:
        return f"{self.timing} {self.event}"


@dataclass(frozen=True)
class Trigger:
    """A row-level trigger binding a collection to a stored function.

    Attributes:
        name: Trigger name, unique within its collection.
        collection: Collection the trigger is attached to.
        function_name: Name of the bound stored function.
        timing: BEFORE or AFTER.
        event: INSERT, UPDATE or DELETE.
    """

    name: str
    collection: str
    function_name: str
    timing: str = TriggerTiming.BEFORE
    event: str = TriggerEvent.UPDATE

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Trigger name is required")
        if self.timing not in TriggerTiming.ALL:
            raise ValueError(f"Unknown trigger timing: {self.timing}")
        if self.event not in TriggerEvent.ALL:
            raise ValueError(f"Unknown trigger event: {self.event}")

    @property
    def firing_condition(self) -> FiringCondition:
        return FiringCondition(self.timing, self.event)

    @property
    def binding(self) -> tuple[str, FiringCondition]:
        """(collection, firing condition) pair, independent of the bound function."""
        return self.collection, self.firing_condition


@dataclass
class TriggerContext:
    """Context passed to a trigger function invocation.

    Attributes:
        collection: Collection being modified.
        timing: BEFORE or AFTER.
        event: INSERT, UPDATE or DELETE.
        actor: Session that issued the operation.
        transaction: Enclosing transaction.
        new: Row as it will be persisted (None for DELETE).
        old: Row before the change (None for INSERT).
        request_id: Correlation ID for logging.
    """

    collection: str
    timing: str
    event: str
    actor: ActorContext
    transaction: TransactionContext
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None
    request_id: str = field(default_factory=lambda: f"tg_{uuid.uuid4().hex[:12]}")
