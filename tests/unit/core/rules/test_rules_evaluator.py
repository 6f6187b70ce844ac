"""Tests for predicate evaluation."""

from datetime import datetime, timezone

import pytest

from rowguard.core.rules import (
    CallContext,
    FunctionResolver,
    Namespace,
    UnresolvedFunctionError,
    builtin_namespace,
    evaluate_rule,
    parse_rule,
)


def evaluate(expression, context=None, **kwargs):
    return evaluate_rule(parse_rule(expression), context or {}, **kwargs)


class TestEvaluatorComparisons:
    """Test comparison semantics."""

    def test_equality(self):
        assert evaluate("owner_id == auth.id", {"owner_id": "u1", "auth": {"id": "u1"}}) is True
        assert evaluate("owner_id = auth.id", {"owner_id": "u1", "auth": {"id": "u2"}}) is False

    def test_inequality(self):
        assert evaluate("status <> 'archived'", {"status": "open"}) is True

    def test_missing_variable_is_none(self):
        assert evaluate("missing == null") is True
        assert evaluate("auth.claims.tenant == null", {"auth": {}}) is True

    def test_ordering_across_types_is_false(self):
        assert evaluate("count > 5", {"count": None}) is False
        assert evaluate("count < 5", {"count": "x"}) is False

    def test_ordering(self):
        assert evaluate("count >= 5", {"count": 5}) is True
        assert evaluate("count < 5", {"count": 5}) is False

    def test_in_list(self):
        assert evaluate("auth.role in ['admin', 'editor']", {"auth": {"role": "editor"}}) is True
        assert evaluate("auth.role in ['admin']", {"auth": {"role": "editor"}}) is False

    def test_in_none_is_false(self):
        assert evaluate("'a' in tags", {"tags": None}) is False

    def test_in_non_container_is_false(self):
        assert evaluate("'a' in count", {"count": 3}) is False


class TestEvaluatorLogic:
    """Test boolean operators."""

    def test_and_short_circuits(self):
        # The right side would fail to resolve
        assert evaluate("false and unknown_fn()") is False

    def test_or_short_circuits(self):
        assert evaluate("true or unknown_fn()") is True

    def test_not(self):
        assert evaluate("not active", {"active": False}) is True


class TestEvaluatorFunctions:
    """Test function resolution during evaluation."""

    def test_now_returns_transaction_time(self):
        started = datetime(2025, 10, 25, 8, 54, 56, tzinfo=timezone.utc)
        assert evaluate("now()", call=CallContext(transaction_time=started)) == started

    def test_current_user(self):
        call = CallContext(current_user="postgres", session_user="user_1")
        assert evaluate("current_user()", call=call) == "postgres"
        assert evaluate("session_user()", call=call) == "user_1"

    def test_unknown_function(self):
        with pytest.raises(UnresolvedFunctionError, match=r"function nope\(\) does not exist"):
            evaluate("nope()")

    def test_first_namespace_on_path_wins(self):
        public = Namespace("public")
        public.define("now", lambda call: "shadowed")
        namespaces = {"pg_catalog": builtin_namespace(), "public": public}

        resolver = FunctionResolver(namespaces, ("public", "pg_catalog"))
        assert evaluate("now()", functions=resolver) == "shadowed"

        resolver = FunctionResolver(namespaces, ("pg_catalog", "public"))
        assert evaluate("now()", functions=resolver) != "shadowed"

    def test_qualified_name_bypasses_path(self):
        public = Namespace("public")
        public.define("now", lambda call: "shadowed")
        resolver = FunctionResolver({"pg_catalog": builtin_namespace(), "public": public}, ("public",))
        started = datetime(2025, 1, 1, tzinfo=timezone.utc)

        result = evaluate("pg_catalog.now()", functions=resolver, call=CallContext(transaction_time=started))
        assert result == started
