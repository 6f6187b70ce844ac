"""Predicate Expression API."""

from typing import Any

from .ast import Node
from .evaluator import Evaluator
from .exceptions import RuleError, RuleEvaluationError, RuleSyntaxError, UnresolvedFunctionError
from .functions import CallContext, FunctionResolver, Namespace, builtin_namespace
from .parser import parse_expression

def parse_rule(expression: str) -> Node:
    """Parse a predicate expression string into an AST."""
    return parse_expression(expression)

def evaluate_rule(
    node: Node,
    context: dict[str, Any],
    functions: FunctionResolver | None = None,
    call: CallContext | None = None,
) -> Any:
    """Evaluate a parsed predicate AST against a context."""
    return Evaluator(context, functions, call).evaluate(node)

__all__ = [
    "parse_rule",
    "evaluate_rule",
    "Evaluator",
    "CallContext",
    "FunctionResolver",
    "Namespace",
    "Node",
    "builtin_namespace",
    "RuleError",
    "RuleSyntaxError",
    "RuleEvaluationError",
    "UnresolvedFunctionError",
]
