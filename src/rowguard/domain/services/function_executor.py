"""Trigger function execution.

Runs a stored function's assignments against the row a trigger is
processing. The function's execution security decides whose identity
``current_user()`` reports, and its resolution path decides which
namespace an unqualified call resolves to. An unpinned function inherits
the caller's search path, so the caller decides what ``now()`` means.
"""

from collections.abc import Mapping
from typing import Any

from rowguard.core.logging import get_logger
from rowguard.core.rules import CallContext, Evaluator, FunctionResolver, Namespace
from rowguard.domain.entities.stored_function import ExecutionSecurity, StoredFunction
from rowguard.domain.entities.trigger import TriggerContext

logger = get_logger(__name__)


class FunctionExecutor:
    """Executes stored trigger functions against a namespace table."""

    def __init__(self, namespaces: Mapping[str, Namespace]) -> None:
        self.namespaces = namespaces

    def resolution_path_for(self, function: StoredFunction, context: TriggerContext) -> tuple[str, ...]:
        if function.resolution_path is not None:
            return function.resolution_path
        return context.actor.search_path

    def identity_for(self, function: StoredFunction, context: TriggerContext) -> str:
        if function.security is ExecutionSecurity.DEFINER:
            return function.owner
        return context.actor.role

    def invoke(self, function: StoredFunction, context: TriggerContext) -> dict[str, Any]:
        """Run ``function`` and return the replacement new row.

        Raises:
            UnresolvedFunctionError: If a call in the body cannot be resolved.
            RuleEvaluationError: If an assignment fails to evaluate.
        """
        path = self.resolution_path_for(function, context)
        identity = self.identity_for(function, context)

        if not function.is_pinned:
            logger.warning(
                "Function inherits caller search path",
                function=function.name,
                search_path=list(path),
                actor=context.actor.actor_id,
            )

        call = CallContext(
            transaction_time=context.transaction.started_at,
            current_user=identity,
            session_user=context.actor.actor_id,
        )
        resolver = FunctionResolver(self.namespaces, path)

        new_row = dict(context.new or {})
        for attribute, node in function.compiled:
            scope = {"new": new_row, "old": context.old or {}}
            new_row[attribute] = Evaluator(scope, resolver, call).evaluate(node)

        logger.debug(
            "Function executed",
            function=function.name,
            collection=context.collection,
            executed_as=identity,
            assigned=[attribute for attribute, _ in function.compiled],
            request_id=context.request_id,
        )
        return new_row
