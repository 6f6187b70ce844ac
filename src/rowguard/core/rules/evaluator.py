"""Evaluator for predicate expressions.

Evaluation is synchronous: predicates and trigger bodies run inline in the
operation that triggered them.
"""

from typing import Any

from .ast import BinaryOp, FunctionCall, ListLiteral, Literal, Node, UnaryOp, Variable
from .exceptions import RuleEvaluationError
from .functions import CallContext, FunctionResolver, default_resolver


class Evaluator:
    """Evaluates an AST against a context."""

    def __init__(
        self,
        context: dict[str, Any],
        functions: FunctionResolver | None = None,
        call: CallContext | None = None,
    ):
        """Initialize the evaluator.

        Args:
            context: The data context (row columns, ``auth``, ``new``/``old``).
            functions: Resolver for function calls; built-ins only by default.
            call: Ambient values passed to every function call.
        """
        self.context = context
        self.functions = functions or default_resolver()
        self.call = call or CallContext()

    def evaluate(self, node: Node) -> Any:
        """Evaluate a node."""
        if isinstance(node, Literal):
            return node.value

        if isinstance(node, Variable):
            return self._resolve_variable(node.name)

        if isinstance(node, BinaryOp):
            return self._evaluate_binary(node)

        if isinstance(node, UnaryOp):
            return self._evaluate_unary(node)

        if isinstance(node, FunctionCall):
            return self._evaluate_function(node)

        if isinstance(node, ListLiteral):
            return [self.evaluate(item) for item in node.items]

        raise RuleEvaluationError(f"Unknown node type: {type(node).__name__}")

    def _resolve_variable(self, name: str) -> Any:
        """Resolve a dotted variable; missing parts resolve to None."""
        value: Any = self.context

        for part in name.split("."):
            if value is None:
                return None
            if isinstance(value, dict):
                value = value.get(part)
                continue
            value = getattr(value, part, None)

        return value

    def _evaluate_binary(self, node: BinaryOp) -> Any:
        # Short-circuit logic for AND/OR
        if node.operator == "and":
            if not bool(self.evaluate(node.left)):
                return False
            return bool(self.evaluate(node.right))

        if node.operator == "or":
            if bool(self.evaluate(node.left)):
                return True
            return bool(self.evaluate(node.right))

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        op = node.operator

        if op == "==":
            return left == right
        if op == "!=":
            return left != right

        if op == "in":
            if right is None:
                return False
            try:
                return left in right
            except TypeError:
                return False

        # Incomparable types (e.g. None < 5) are simply false
        try:
            if op == "<":
                return left < right
            if op == ">":
                return left > right
            if op == "<=":
                return left <= right
            if op == ">=":
                return left >= right
        except TypeError:
            return False

        raise RuleEvaluationError(f"Unknown binary operator: {op}")

    def _evaluate_unary(self, node: UnaryOp) -> Any:
        if node.operator == "not":
            return not bool(self.evaluate(node.operand))

        raise RuleEvaluationError(f"Unknown unary operator: {node.operator}")

    def _evaluate_function(self, node: FunctionCall) -> Any:
        function = self.functions.resolve(node.name)
        args = [self.evaluate(arg) for arg in node.arguments]
        return function(self.call, *args)
