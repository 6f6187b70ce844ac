"""Domain exceptions for RowGuard.

Configuration errors describe a catalog state that must be fixed by a
schema change; runtime errors abort the operation that hit them. Neither
kind is swallowed by the resolver, the maintainer or the applicator.
"""

from typing import Any


class RowGuardError(Exception):
    """Base class for all RowGuard errors."""


class ConfigurationError(RowGuardError):
    """The catalog is in a state that cannot be evaluated safely."""


class MissingCollectionError(ConfigurationError):
    """A referenced collection does not exist."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"Collection '{collection}' does not exist")


class AccessControlDisabledError(ConfigurationError):
    """Access control is not enabled on the collection ("no protection configured")."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"Access control is not enabled on collection '{collection}'")


class AmbiguousRulePairError(ConfigurationError):
    """An ALL-scoped rule and an operation-specific rule cover the same operation."""

    def __init__(
        self,
        collection: str,
        operation: str,
        all_rules: list[str],
        specific_rules: list[str],
    ) -> None:
        self.collection = collection
        self.operation = operation
        self.all_rules = all_rules
        self.specific_rules = specific_rules
        super().__init__(
            f"Collection '{collection}' has ALL-scoped rules {all_rules} and "
            f"{operation}-specific rules {specific_rules}; drop the ALL-scoped rules"
        )


class InvalidRuleError(ConfigurationError):
    """A rule definition is malformed."""


class DuplicateObjectError(ConfigurationError):
    """An object with the same name but a different definition already exists."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} '{name}' already exists with a different definition")


class DependentObjectsError(ConfigurationError):
    """An object cannot be dropped because other objects depend on it."""

    def __init__(self, name: str, dependents: list[str]) -> None:
        self.name = name
        self.dependents = dependents
        super().__init__(
            f"Cannot drop '{name}' because other objects depend on it: "
            f"{', '.join(dependents)} (use cascade)"
        )


class UnresolvedMaintainerFunctionError(RowGuardError):
    """A trigger references a function that no longer exists."""

    def __init__(self, trigger: str, function: str) -> None:
        self.trigger = trigger
        self.function = function
        super().__init__(f"Trigger '{trigger}' references missing function '{function}'")


class PolicyViolationError(RowGuardError):
    """A write cannot satisfy the check predicate of any applicable rule."""

    def __init__(self, collection: str, operation: str, reason: str = "") -> None:
        self.collection = collection
        self.operation = operation
        self.reason = reason
        message = f"New row violates row-level policy for {operation} on '{collection}'"
        super().__init__(f"{message}: {reason}" if reason else message)


class PartialChangeSetApplicationError(RowGuardError):
    """A change-set stopped part-way; applied steps are not rolled back."""

    def __init__(
        self,
        change_set_id: str,
        applied_steps: int,
        total_steps: int,
        failed_operation: Any,
    ) -> None:
        self.change_set_id = change_set_id
        self.applied_steps = applied_steps
        self.total_steps = total_steps
        self.failed_operation = failed_operation
        super().__init__(
            f"Change-set '{change_set_id}' applied {applied_steps} of {total_steps} steps; "
            f"failed at: {failed_operation}"
        )
