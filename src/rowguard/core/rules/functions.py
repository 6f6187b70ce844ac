"""Namespaced scalar functions and name resolution.

Function calls inside predicates and trigger-function bodies are resolved
through an ordered list of namespaces (the resolution path). Qualified
names (``pg_catalog.now``) bypass the path; unqualified names take the
first namespace on the path that defines them. Nothing is searched
implicitly, so whoever controls the path controls what an unqualified
call means.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .exceptions import RuleEvaluationError, UnresolvedFunctionError

BUILTIN_NAMESPACE = "pg_catalog"
DEFAULT_NAMESPACE = "public"


@dataclass(frozen=True)
class CallContext:
    """Ambient values visible to scalar functions during one evaluation.

    Attributes:
        transaction_time: Start time of the enclosing transaction.
        current_user: Identity the code executes as (owner for definer functions).
        session_user: Identity of the actor that opened the session.
    """

    transaction_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    current_user: str = "anonymous"
    session_user: str = "anonymous"


@dataclass(frozen=True)
class ScalarFunction:
    """A callable registered in a namespace.

    ``impl`` receives the CallContext first, then the evaluated arguments.
    """

    namespace: str
    name: str
    impl: Callable[..., Any]

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}"

    def __call__(self, call: CallContext, *args: Any) -> Any:
        return self.impl(call, *args)


class Namespace:
    """A named set of scalar functions (a schema)."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._functions: dict[str, ScalarFunction] = {}

    def define(self, name: str, impl: Callable[..., Any]) -> ScalarFunction:
        """Define or replace a function in this namespace."""
        function = ScalarFunction(namespace=self.name, name=name, impl=impl)
        self._functions[name] = function
        return function

    def get(self, name: str) -> ScalarFunction | None:
        return self._functions.get(name)

    def names(self) -> list[str]:
        return sorted(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions


class FunctionResolver:
    """Resolves function names against namespaces and a resolution path."""

    def __init__(self, namespaces: Mapping[str, Namespace], search_path: Sequence[str]) -> None:
        self.namespaces = namespaces
        self.search_path = tuple(search_path)

    def resolve(self, name: str) -> ScalarFunction:
        """Find the function a call name refers to.

        Raises:
            UnresolvedFunctionError: If no namespace on the path defines the name.
        """
        if "." in name:
            schema, _, func_name = name.rpartition(".")
            namespace = self.namespaces.get(schema)
            function = namespace.get(func_name) if namespace else None
            if function is None:
                raise UnresolvedFunctionError(name, (schema,))
            return function

        for schema in self.search_path:
            namespace = self.namespaces.get(schema)
            if namespace is None:
                continue
            function = namespace.get(name)
            if function is not None:
                return function

        raise UnresolvedFunctionError(name, self.search_path)


def _expect_args(name: str, args: tuple[Any, ...], count: int) -> None:
    if len(args) != count:
        raise RuleEvaluationError(f"{name}() expects {count} arguments")


def _contains(call: CallContext, *args: Any) -> bool:
    _expect_args("contains", args, 2)
    container, item = args
    if container is None:
        return False
    try:
        return item in container
    except TypeError:
        return False


def _starts_with(call: CallContext, *args: Any) -> bool:
    _expect_args("starts_with", args, 2)
    value, prefix = args
    if not isinstance(value, str) or not isinstance(prefix, str):
        return False
    return value.startswith(prefix)


def _ends_with(call: CallContext, *args: Any) -> bool:
    _expect_args("ends_with", args, 2)
    value, suffix = args
    if not isinstance(value, str) or not isinstance(suffix, str):
        return False
    return value.endswith(suffix)


def _lower(call: CallContext, *args: Any) -> str | None:
    _expect_args("lower", args, 1)
    return args[0].lower() if isinstance(args[0], str) else None


def _upper(call: CallContext, *args: Any) -> str | None:
    _expect_args("upper", args, 1)
    return args[0].upper() if isinstance(args[0], str) else None


def _coalesce(call: CallContext, *args: Any) -> Any:
    return next((arg for arg in args if arg is not None), None)


def builtin_namespace() -> Namespace:
    """Build the ``pg_catalog`` namespace with the built-in functions."""
    namespace = Namespace(BUILTIN_NAMESPACE)
    namespace.define("now", lambda call: call.transaction_time)
    namespace.define("current_user", lambda call: call.current_user)
    namespace.define("session_user", lambda call: call.session_user)
    namespace.define("contains", _contains)
    namespace.define("starts_with", _starts_with)
    namespace.define("ends_with", _ends_with)
    namespace.define("lower", _lower)
    namespace.define("upper", _upper)
    namespace.define("coalesce", _coalesce)
    return namespace


def default_resolver() -> FunctionResolver:
    """Resolver over the built-in namespace only."""
    return FunctionResolver({BUILTIN_NAMESPACE: builtin_namespace()}, (BUILTIN_NAMESPACE,))
