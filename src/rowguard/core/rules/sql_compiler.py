"""SQL compiler for predicate expressions.

Compiles AST nodes to PostgreSQL expression text for use inside DDL
(``CREATE POLICY ... USING (...)``, trigger function bodies). DDL cannot
carry bind parameters, so literals are rendered inline and quoted.
"""

from typing import Any

from .ast import BinaryOp, FunctionCall, ListLiteral, Literal, Node, UnaryOp, Variable
from .exceptions import RuleEvaluationError
from .parser import parse_expression

AUTH_PREFIX = "auth."
AUTH_FUNCTIONS = {"id": "auth.uid()", "role": "auth.role()"}
ROW_PREFIXES = {"new.": "NEW.", "old.": "OLD."}

OPERATOR_MAP = {
    "==": "=",
    "!=": "<>",
    "<": "<",
    ">": ">",
    "<=": "<=",
    ">=": ">=",
    "and": "AND",
    "or": "OR",
}


def quote_identifier(name: str) -> str:
    """Quote an identifier when it is not a plain lower-case name."""
    if name.replace("_", "").isalnum() and name == name.lower() and not name[0].isdigit():
        return name
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: Any) -> str:
    """Render a Python value as a SQL literal."""
    if value is None:
        return "NULL"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise RuleEvaluationError(f"Cannot render literal of type {type(value).__name__}")


class SQLCompiler:
    """Compiles predicate AST to PostgreSQL expression text."""

    def compile(self, node: Node) -> str:
        return self._compile_node(node, top_level=True)

    def _compile_node(self, node: Node, top_level: bool = False) -> str:
        if isinstance(node, Literal):
            return quote_literal(node.value)

        if isinstance(node, Variable):
            return self._compile_variable(node)

        if isinstance(node, BinaryOp):
            sql = self._compile_binary_op(node)
            if node.operator in ("and", "or") and not top_level:
                return f"({sql})"
            return sql

        if isinstance(node, UnaryOp):
            if node.operator == "not":
                return f"NOT ({self._compile_node(node.operand, top_level=True)})"
            raise RuleEvaluationError(f"Unknown unary operator: {node.operator}")

        if isinstance(node, FunctionCall):
            args = ", ".join(self._compile_node(arg, top_level=True) for arg in node.arguments)
            return f"{node.name}({args})"

        if isinstance(node, ListLiteral):
            items = ", ".join(self._compile_node(item, top_level=True) for item in node.items)
            return f"ARRAY[{items}]"

        raise RuleEvaluationError(f"Unknown node type: {type(node).__name__}")

    def _compile_variable(self, node: Variable) -> str:
        """Compile a variable to a column, row reference or auth accessor.

        - ``auth.id`` / ``auth.role`` → ``auth.uid()`` / ``auth.role()``
        - ``auth.<claim>`` → ``(auth.jwt() ->> '<claim>')``
        - ``new.col`` / ``old.col`` → ``NEW.col`` / ``OLD.col``
        - ``col`` → column reference
        """
        name = node.name

        if name.startswith(AUTH_PREFIX):
            claim = name[len(AUTH_PREFIX):]
            if claim in AUTH_FUNCTIONS:
                return AUTH_FUNCTIONS[claim]
            return f"(auth.jwt() ->> {quote_literal(claim)})"

        for prefix, sql_prefix in ROW_PREFIXES.items():
            if name.startswith(prefix):
                return sql_prefix + quote_identifier(name[len(prefix):])

        if "." in name:
            raise RuleEvaluationError(f"Cannot compile nested reference: {name}")

        return quote_identifier(name)

    def _compile_binary_op(self, node: BinaryOp) -> str:
        left = self._compile_node(node.left)
        right = self._compile_node(node.right)

        if node.operator == "in":
            if isinstance(node.right, ListLiteral):
                items = ", ".join(self._compile_node(item, top_level=True) for item in node.right.items)
                return f"{left} IN ({items})"
            return f"{left} = ANY({right})"

        # SQL equality with NULL never holds; IS / IS NOT keep the evaluator's meaning
        if node.operator in ("==", "!=") and isinstance(node.right, Literal) and node.right.value is None:
            return f"{left} IS {'NOT ' if node.operator == '!=' else ''}NULL"

        sql_op = OPERATOR_MAP.get(node.operator)
        if sql_op is None:
            raise RuleEvaluationError(f"Unknown operator: {node.operator}")

        return f"{left} {sql_op} {right}"


def compile_to_sql(expression: str) -> str:
    """Compile a predicate expression to PostgreSQL expression text.

    Examples:
        >>> compile_to_sql("true")
        'true'

        >>> compile_to_sql("owner_id == auth.id and status != 'archived'")
        "owner_id = auth.uid() AND status <> 'archived'"
    """
    return SQLCompiler().compile(parse_expression(expression))
