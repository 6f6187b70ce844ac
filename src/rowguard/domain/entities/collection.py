"""Resource collection entity.

A collection is the table-equivalent that rules and triggers attach to.
Access control is off only at creation; once enabled, every operation is
default-deny unless a rule allows it.
"""

from dataclasses import dataclass, field

from rowguard.core.rules import RuleSyntaxError
from rowguard.core.rules.rule_validator import RuleValidator
from rowguard.domain.entities.rule import Operation, OperationScope, Rule
from rowguard.domain.exceptions import AmbiguousRulePairError, InvalidRuleError


@dataclass
class ResourceCollection:
    """A named collection of homogeneous records.

    Attributes:
        name: Unique collection name.
        columns: Declared attribute names; empty means undeclared.
        access_control_enabled: Whether rules are enforced.
        access_sensitive: False only for collections explicitly marked
            unprotected; these may be accessed without access control.
        rules: Rules keyed by name, in creation order.
    """

    name: str
    columns: tuple[str, ...] = ()
    access_control_enabled: bool = False
    access_sensitive: bool = True
    rules: dict[str, Rule] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Collection name is required")
        self.columns = tuple(self.columns)

    def rules_for(self, operation: Operation) -> list[Rule]:
        """Rules whose scope is ``operation`` or ALL, in creation order."""
        return [rule for rule in self.rules.values() if rule.scope.matches(operation)]

    def conflicts_for(self, operation: Operation) -> tuple[list[str], list[str]] | None:
        """Return (ALL rule names, specific rule names) if both cover ``operation``."""
        matching = self.rules_for(operation)
        all_rules = [r.name for r in matching if r.scope is OperationScope.ALL]
        specific = [r.name for r in matching if r.scope.is_specific]
        if all_rules and specific:
            return all_rules, specific
        return None

    def validate_rule(self, rule: Rule) -> None:
        """Check rule predicates against the declared columns."""
        if not self.columns:
            return
        validator = RuleValidator(list(self.columns))
        try:
            for expression in rule.expressions():
                validator.validate(expression)
        except RuleSyntaxError as e:
            raise InvalidRuleError(f"Rule '{rule.name}' on '{self.name}': {e}") from e

    def add_rule(self, rule: Rule, allow_ambiguous: bool = False) -> None:
        """Attach a rule.

        Raises:
            AmbiguousRulePairError: If the rule would put an ALL-scoped rule next
                to an operation-specific rule, unless ``allow_ambiguous`` is set
                (used when importing legacy state so it can be audited).
        """
        self.validate_rule(rule)
        if not allow_ambiguous:
            for operation in Operation:
                if not rule.scope.matches(operation):
                    continue
                existing = self.rules_for(operation)
                if rule.scope is OperationScope.ALL:
                    specific = [r.name for r in existing if r.scope.is_specific]
                    if specific:
                        raise AmbiguousRulePairError(self.name, operation.value, [rule.name], specific)
                else:
                    all_rules = [r.name for r in existing if r.scope is OperationScope.ALL]
                    if all_rules:
                        raise AmbiguousRulePairError(self.name, operation.value, all_rules, [rule.name])
        self.rules[rule.name] = rule

    def remove_rule(self, name: str) -> Rule | None:
        return self.rules.pop(name, None)

    @property
    def has_specific_rules(self) -> bool:
        return any(rule.scope.is_specific for rule in self.rules.values())
