"""Predicate expression validator.

Validates predicates before a rule or function is created, so a typo in a
column name is a creation-time error instead of a predicate that is
silently always false.
"""

from .ast import Node, Variable, walk
from .exceptions import RuleSyntaxError
from .parser import parse_expression

AUTH_PREFIX = "auth."
NEW_PREFIX = "new."
OLD_PREFIX = "old."


class RuleValidator:
    """Validates variable references in predicate expressions.

    Args:
        collection_fields: Declared columns of the collection. An empty list
            disables column checks (the collection declares no schema).
        allow_row_references: Whether ``new.*`` / ``old.*`` are allowed
            (trigger function bodies) instead of bare columns (rule predicates).
    """

    def __init__(self, collection_fields: list[str], allow_row_references: bool = False):
        self.collection_fields = set(collection_fields)
        self.allow_row_references = allow_row_references
        self.errors: list[str] = []

    def validate(self, expression: str) -> Node:
        """Parse and validate an expression.

        Returns:
            The parsed tree.

        Raises:
            RuleSyntaxError: If the expression is invalid.
        """
        ast = parse_expression(expression)

        self.errors = []
        for node in walk(ast):
            if isinstance(node, Variable):
                self._validate_variable(node.name)

        if self.errors:
            raise RuleSyntaxError("; ".join(self.errors))
        return ast

    def _validate_variable(self, name: str) -> None:
        if name.startswith(AUTH_PREFIX):
            if not name[len(AUTH_PREFIX):]:
                self.errors.append("Empty auth variable")
            return

        if name.startswith((NEW_PREFIX, OLD_PREFIX)):
            if not self.allow_row_references:
                self.errors.append(f"'{name}' is only valid in trigger function bodies")
                return
            name = name.split(".", 1)[1]
        elif self.allow_row_references:
            self.errors.append(f"Bare reference '{name}' in a trigger function body; use new.{name}")
            return

        if self.collection_fields and name not in self.collection_fields:
            self.errors.append(
                f"Field '{name}' does not exist in collection. "
                f"Available fields: {', '.join(sorted(self.collection_fields))}"
            )


def validate_rule_expression(expression: str, collection_fields: list[str]) -> None:
    """Validate a rule predicate.

    Examples:
        >>> validate_rule_expression("owner_id == auth.id", ["owner_id"])
        # OK

        >>> validate_rule_expression("owner == auth.id", ["owner_id"])
        # Raises: RuleSyntaxError: Field 'owner' does not exist in collection
    """
    RuleValidator(collection_fields).validate(expression)
