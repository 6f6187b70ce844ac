"""Exceptions for predicate parsing and evaluation."""

class RuleError(Exception):
    """Base class for all predicate expression errors."""
    pass

class RuleSyntaxError(RuleError):
    """Raised when a predicate expression does not parse."""
    def __init__(self, message: str, position: int | None = None):
        self.position = position
        super().__init__(f"{message} at position {position}" if position is not None else message)

class RuleEvaluationError(RuleError):
    """Raised when evaluating a predicate expression fails."""
    pass

class UnresolvedFunctionError(RuleEvaluationError):
    """Raised when a function name is not found on the resolution path."""
    def __init__(self, name: str, search_path: tuple[str, ...]):
        self.name = name
        self.search_path = search_path
        super().__init__(
            f"function {name}() does not exist in search path ({', '.join(search_path)})"
        )
