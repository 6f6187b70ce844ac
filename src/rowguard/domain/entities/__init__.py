"""Domain entities for RowGuard.

Entities are plain dataclasses describing the catalog: collections and
their rules, trigger functions, triggers, indexes, and the actor and
transaction an operation runs in.
"""

from rowguard.domain.entities.collection import ResourceCollection
from rowguard.domain.entities.decision import Decision, DeniedStage, PolicyDecision
from rowguard.domain.entities.index import Index, IndexUsage
from rowguard.domain.entities.rule import PUBLIC_ROLE, Operation, OperationScope, Rule
from rowguard.domain.entities.session import ActorContext, TransactionContext
from rowguard.domain.entities.stored_function import ExecutionSecurity, StoredFunction
from rowguard.domain.entities.trigger import FiringCondition, Trigger, TriggerContext

__all__ = [
    "ActorContext",
    "Decision",
    "DeniedStage",
    "ExecutionSecurity",
    "FiringCondition",
    "Index",
    "IndexUsage",
    "Operation",
    "OperationScope",
    "PolicyDecision",
    "PUBLIC_ROLE",
    "ResourceCollection",
    "Rule",
    "StoredFunction",
    "TransactionContext",
    "Trigger",
    "TriggerContext",
]
