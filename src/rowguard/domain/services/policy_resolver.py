"""Policy resolution service.

Decides whether an actor may perform an operation on a collection by
evaluating the collection's rules for that operation.

Rules within one operation are combined with OR logic (permissive union):
one rule that holds is enough. Deny by default - once access control is
enabled, no matching rule means access denied.
"""

from typing import Any

from rowguard.core.logging import get_logger
from rowguard.core.rules import CallContext, Evaluator, FunctionResolver
from rowguard.core.rules.ast import Node
from rowguard.domain.entities.collection import ResourceCollection
from rowguard.domain.entities.decision import DeniedStage, PolicyDecision
from rowguard.domain.entities.rule import Operation, Rule
from rowguard.domain.entities.session import ActorContext, TransactionContext
from rowguard.domain.exceptions import AccessControlDisabledError, AmbiguousRulePairError

logger = get_logger(__name__)


class PolicyResolver:
    """Resolves allow/deny decisions for collection operations.

    Resolution order:
    1. Refuse collections without access control (no protection configured)
    2. Select rules scoped to the operation or to ALL
    3. Reject ALL + operation-specific combinations as a configuration error
    4. Keep rules that apply to the actor's role
    5. Evaluate predicates; any rule that holds allows the operation

    The resolver is pure: it reads rules and request context and has no
    side effects beyond logging.
    """

    def __init__(self, functions: FunctionResolver | None = None) -> None:
        """Initialize the resolver.

        Args:
            functions: Resolver for function calls inside predicates. Defaults
                to the built-in functions only.
        """
        self.functions = functions

    def evaluate(
        self,
        collection: ResourceCollection,
        operation: Operation,
        actor: ActorContext,
        row: dict[str, Any] | None = None,
        new_row: dict[str, Any] | None = None,
        transaction: TransactionContext | None = None,
    ) -> PolicyDecision:
        """Decide whether ``actor`` may perform ``operation``.

        Args:
            collection: Collection being accessed.
            operation: Operation kind.
            actor: Actor session context.
            row: Existing row (SELECT, UPDATE, DELETE). For INSERT it is used
                as the candidate when ``new_row`` is not given.
            new_row: Candidate row (INSERT, UPDATE).
            transaction: Enclosing transaction, for ``now()`` in predicates.

        Returns:
            PolicyDecision for the operation.

        Raises:
            AccessControlDisabledError: If the collection has access control off.
            AmbiguousRulePairError: If ALL-scoped and specific rules both match.
        """
        operation = Operation(operation)
        self.check_configuration(collection, operation, actor)

        rules = [r for r in collection.rules_for(operation) if r.applies_to(actor.role)]
        if not rules:
            decision = PolicyDecision.deny(
                DeniedStage.NO_RULE,
                f"no {operation.value} rule on '{collection.name}' applies to role '{actor.role}'",
            )
            self._log(collection, operation, actor, decision)
            return decision

        evaluator = self._evaluator(actor, transaction)

        if operation in (Operation.SELECT, Operation.DELETE):
            decision = self._any_holds(rules, evaluator, row, DeniedStage.USING, using=True)
        elif operation is Operation.INSERT:
            candidate = new_row if new_row is not None else row
            decision = self._any_holds(rules, evaluator, candidate, DeniedStage.CHECK, using=False)
        else:
            decision = self._evaluate_update(rules, evaluator, row, new_row)

        self._log(collection, operation, actor, decision)
        return decision

    def check_configuration(
        self,
        collection: ResourceCollection,
        operation: Operation,
        actor: ActorContext,
    ) -> None:
        """Refuse a collection whose rules cannot decide ``operation``.

        Needs no row, so callers can run it once per statement before any
        row is looked up.

        Raises:
            AccessControlDisabledError: If the collection has access control off.
            AmbiguousRulePairError: If ALL-scoped and specific rules both match.
        """
        operation = Operation(operation)

        if not collection.access_control_enabled:
            logger.warning(
                "No protection configured",
                collection=collection.name,
                operation=operation.value,
                actor=actor.actor_id,
            )
            raise AccessControlDisabledError(collection.name)

        conflict = collection.conflicts_for(operation)
        if conflict is not None:
            all_rules, specific = conflict
            logger.error(
                "Ambiguous rule pair",
                collection=collection.name,
                operation=operation.value,
                all_rules=all_rules,
                specific_rules=specific,
            )
            raise AmbiguousRulePairError(collection.name, operation.value, all_rules, specific)

    def _evaluator(self, actor: ActorContext, transaction: TransactionContext | None) -> "_PredicateEvaluator":
        call = CallContext(
            transaction_time=(transaction or TransactionContext()).started_at,
            current_user=actor.role,
            session_user=actor.actor_id,
        )
        return _PredicateEvaluator(actor, self.functions, call)

    def _any_holds(
        self,
        rules: list[Rule],
        evaluator: "_PredicateEvaluator",
        row: dict[str, Any] | None,
        stage: DeniedStage,
        using: bool,
    ) -> PolicyDecision:
        matched = [
            rule.name
            for rule in rules
            if evaluator.holds(rule.effective_using if using else rule.effective_check, row)
        ]
        if matched:
            return PolicyDecision.allow(matched)
        return PolicyDecision.deny(stage, f"no {stage.value} predicate holds")

    def _evaluate_update(
        self,
        rules: list[Rule],
        evaluator: "_PredicateEvaluator",
        old_row: dict[str, Any] | None,
        new_row: dict[str, Any] | None,
    ) -> PolicyDecision:
        """UPDATE needs one rule whose using holds on the old row and whose
        check holds on the new row."""
        visible = [rule for rule in rules if evaluator.holds(rule.effective_using, old_row)]
        if not visible:
            return PolicyDecision.deny(DeniedStage.USING, "row is not visible to any UPDATE rule")

        candidate = new_row if new_row is not None else old_row
        matched = [rule.name for rule in visible if evaluator.holds(rule.effective_check, candidate)]
        if matched:
            return PolicyDecision.allow(matched)
        return PolicyDecision.deny(DeniedStage.CHECK, "new row fails the check predicate of every visible rule")

    def _log(
        self,
        collection: ResourceCollection,
        operation: Operation,
        actor: ActorContext,
        decision: PolicyDecision,
    ) -> None:
        logger.debug(
            "Policy evaluated",
            collection=collection.name,
            operation=operation.value,
            actor=actor.actor_id,
            role=actor.role,
            decision=decision.decision.value,
            matched_rules=decision.matched_rules,
            denied_stage=decision.denied_stage.value if decision.denied_stage else None,
        )


class _PredicateEvaluator:
    """Evaluates rule predicates for one actor against rows."""

    def __init__(self, actor: ActorContext, functions: FunctionResolver | None, call: CallContext) -> None:
        self.auth = actor.as_auth()
        self.functions = functions
        self.call = call

    def holds(self, predicate: Node | None, row: dict[str, Any] | None) -> bool:
        if predicate is None:
            return False
        # auth is bound last so a column named "auth" cannot impersonate the actor
        context = {**(row or {}), "auth": self.auth}
        return bool(Evaluator(context, self.functions, self.call).evaluate(predicate))
