"""Rule entity for row-level access control.

A rule is a named predicate pair attached to a collection. ``using`` is
evaluated against existing rows (SELECT, UPDATE, DELETE); ``check`` is
evaluated against new row values (INSERT, UPDATE). Rules are immutable:
changing one means dropping it and creating a replacement.
"""

from dataclasses import dataclass, field
from enum import Enum

from rowguard.core.rules import RuleSyntaxError
from rowguard.core.rules.ast import Node
from rowguard.core.rules.rule_validator import RuleValidator
from rowguard.domain.exceptions import InvalidRuleError

PUBLIC_ROLE = "public"


class Operation(str, Enum):
    """Data operations a rule can govern."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class OperationScope(str, Enum):
    """Which operations a rule applies to. ALL matches every operation."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "ALL"

    def matches(self, operation: Operation) -> bool:
        return self is OperationScope.ALL or self.value == operation.value

    @property
    def is_specific(self) -> bool:
        return self is not OperationScope.ALL


@dataclass(frozen=True)
class Rule:
    """Row-level access rule.

    Attributes:
        name: Rule name, unique within its collection.
        scope: Operation scope.
        using: Predicate over the existing row, or None.
        check: Predicate over the new row, or None.
        roles: Roles the rule applies to; ``public`` covers every actor.
    """

    name: str
    scope: OperationScope
    using: str | None = None
    check: str | None = None
    roles: tuple[str, ...] = (PUBLIC_ROLE,)
    using_ast: Node | None = field(default=None, init=False, compare=False, repr=False)
    check_ast: Node | None = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidRuleError("Rule name is required")
        if not isinstance(self.scope, OperationScope):
            object.__setattr__(self, "scope", OperationScope(self.scope))
        roles = (self.roles,) if isinstance(self.roles, str) else tuple(self.roles)
        object.__setattr__(self, "roles", roles or (PUBLIC_ROLE,))

        scope = self.scope
        if scope in (OperationScope.SELECT, OperationScope.DELETE):
            if self.using is None:
                raise InvalidRuleError(f"{scope.value} rule '{self.name}' requires a using predicate")
            if self.check is not None:
                raise InvalidRuleError(f"{scope.value} rule '{self.name}' cannot have a check predicate")
        elif scope is OperationScope.INSERT:
            if self.check is None:
                raise InvalidRuleError(f"INSERT rule '{self.name}' requires a check predicate")
            if self.using is not None:
                raise InvalidRuleError(f"INSERT rule '{self.name}' cannot have a using predicate")
        elif self.using is None and self.check is None:
            raise InvalidRuleError(f"{scope.value} rule '{self.name}' requires a predicate")

        try:
            if self.using is not None:
                object.__setattr__(self, "using_ast", RuleValidator([]).validate(self.using))
            if self.check is not None:
                object.__setattr__(self, "check_ast", RuleValidator([]).validate(self.check))
        except RuleSyntaxError as e:
            raise InvalidRuleError(f"Rule '{self.name}': {e}") from e

    def applies_to(self, role: str) -> bool:
        """Whether the rule covers an actor with ``role``."""
        return PUBLIC_ROLE in self.roles or role in self.roles

    @property
    def effective_using(self) -> Node | None:
        """Predicate for existing rows; an ALL rule with only a check reuses it."""
        return self.using_ast if self.using_ast is not None else self.check_ast

    @property
    def effective_check(self) -> Node | None:
        """Predicate for new rows; falls back to ``using`` when no check is given."""
        return self.check_ast if self.check_ast is not None else self.using_ast

    def expressions(self) -> list[str]:
        return [expr for expr in (self.using, self.check) if expr is not None]
