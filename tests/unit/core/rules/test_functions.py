"""Tests for namespaces, built-in functions and the function resolver."""

import pytest

from rowguard.core.rules import (
    CallContext,
    FunctionResolver,
    Namespace,
    RuleEvaluationError,
    UnresolvedFunctionError,
    builtin_namespace,
)
from rowguard.core.rules.functions import default_resolver


@pytest.fixture
def call():
    return CallContext()


class TestNamespace:
    """Tests for Namespace."""

    def test_define_and_get(self):
        namespace = Namespace("public")
        function = namespace.define("greet", lambda call, name: f"hi {name}")

        assert namespace.get("greet") is function
        assert "greet" in namespace
        assert function.qualified_name == "public.greet"
        assert function(CallContext(), "bob") == "hi bob"

    def test_define_replaces(self):
        namespace = Namespace("public")
        namespace.define("f", lambda call: 1)
        namespace.define("f", lambda call: 2)
        assert namespace.get("f")(CallContext()) == 2

    def test_names_sorted(self):
        assert builtin_namespace().names()[:3] == ["coalesce", "contains", "current_user"]


class TestFunctionResolver:
    """Tests for name resolution."""

    def test_no_implicit_namespace(self):
        """A path that omits pg_catalog does not see the built-ins."""
        resolver = FunctionResolver({"pg_catalog": builtin_namespace(), "public": Namespace("public")}, ("public",))
        with pytest.raises(UnresolvedFunctionError) as exc_info:
            resolver.resolve("now")
        assert exc_info.value.search_path == ("public",)

    def test_missing_namespaces_on_path_are_skipped(self):
        resolver = FunctionResolver({"pg_catalog": builtin_namespace()}, ("attacker", "pg_catalog"))
        assert resolver.resolve("now").namespace == "pg_catalog"

    def test_unknown_qualified_schema(self):
        with pytest.raises(UnresolvedFunctionError, match=r"nowhere\.now"):
            default_resolver().resolve("nowhere.now")


class TestBuiltins:
    """Tests for the built-in functions."""

    def test_contains(self, call):
        contains = builtin_namespace().get("contains")
        assert contains(call, ["a", "b"], "a") is True
        assert contains(call, None, "a") is False
        assert contains(call, 5, "a") is False

    def test_starts_and_ends_with(self, call):
        namespace = builtin_namespace()
        assert namespace.get("starts_with")(call, "prefix_x", "prefix") is True
        assert namespace.get("ends_with")(call, "x_suffix", "suffix") is True
        assert namespace.get("starts_with")(call, None, "p") is False

    def test_lower_upper(self, call):
        namespace = builtin_namespace()
        assert namespace.get("lower")(call, "ABC") == "abc"
        assert namespace.get("upper")(call, "abc") == "ABC"
        assert namespace.get("lower")(call, 5) is None

    def test_coalesce(self, call):
        assert builtin_namespace().get("coalesce")(call, None, None, 3, 4) == 3

    def test_wrong_argument_count(self, call):
        with pytest.raises(RuleEvaluationError, match="lower\\(\\) expects 1 arguments"):
            builtin_namespace().get("lower")(call, "a", "b")
