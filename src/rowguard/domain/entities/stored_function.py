"""Trigger function entity.

A stored function is the body a trigger executes: an ordered list of
assignments ``new.<attribute> := <expression>``. Expressions may call
scalar functions by unqualified name; how those names resolve depends on
``resolution_path``.
"""

from dataclasses import dataclass, field
from enum import Enum

from rowguard.core.rules import RuleSyntaxError
from rowguard.core.rules.ast import Node
from rowguard.core.rules.rule_validator import RuleValidator


class ExecutionSecurity(str, Enum):
    """Whose identity a function runs with."""

    DEFINER = "DEFINER"
    INVOKER = "INVOKER"


@dataclass(frozen=True)
class StoredFunction:
    """A trigger function definition.

    Attributes:
        name: Function name.
        assignments: (attribute, expression) pairs applied to the new row in order.
        security: DEFINER runs as ``owner``; INVOKER runs as the calling actor.
        owner: Identity used for DEFINER execution.
        resolution_path: Fixed namespaces for unqualified names, or None to
            inherit the caller's search path.
        language: Procedural language used when rendering DDL.
    """

    name: str
    assignments: tuple[tuple[str, str], ...]
    security: ExecutionSecurity = ExecutionSecurity.INVOKER
    owner: str = "postgres"
    resolution_path: tuple[str, ...] | None = None
    language: str = "plpgsql"
    compiled: tuple[tuple[str, Node], ...] = field(default=(), init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Function name is required")
        if not isinstance(self.security, ExecutionSecurity):
            object.__setattr__(self, "security", ExecutionSecurity(self.security))
        assignments = tuple((attr, expr) for attr, expr in self.assignments)
        object.__setattr__(self, "assignments", assignments)
        if self.resolution_path is not None:
            path = tuple(self.resolution_path)
            if not path:
                raise ValueError("A pinned resolution path must name at least one namespace")
            object.__setattr__(self, "resolution_path", path)

        validator = RuleValidator([], allow_row_references=True)
        compiled = []
        for attribute, expression in assignments:
            try:
                compiled.append((attribute, validator.validate(expression)))
            except RuleSyntaxError as e:
                raise ValueError(f"Function '{self.name}', assignment to {attribute}: {e}") from e
        object.__setattr__(self, "compiled", tuple(compiled))

    @property
    def is_pinned(self) -> bool:
        """Whether name resolution is fixed at definition time."""
        return self.resolution_path is not None

    def expressions(self) -> list[str]:
        return [expression for _, expression in self.assignments]
