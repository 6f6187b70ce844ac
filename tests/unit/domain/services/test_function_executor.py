"""Unit tests for FunctionExecutor."""

from datetime import datetime, timezone

import pytest

from rowguard.core.rules import Namespace, UnresolvedFunctionError, builtin_namespace
from rowguard.domain.entities import (
    ActorContext,
    ExecutionSecurity,
    StoredFunction,
    TransactionContext,
    TriggerContext,
)
from rowguard.domain.services import FunctionExecutor

STARTED = datetime(2025, 10, 25, 8, 54, 56, tzinfo=timezone.utc)


@pytest.fixture
def namespaces():
    public = Namespace("public")
    public.define("now", lambda call: datetime(1999, 1, 1, tzinfo=timezone.utc))
    return {"pg_catalog": builtin_namespace(), "public": public}


def make_context(actor=None, new=None, old=None):
    return TriggerContext(
        collection="items",
        timing="BEFORE",
        event="UPDATE",
        actor=actor or ActorContext("user_1"),
        transaction=TransactionContext(started_at=STARTED),
        new=new if new is not None else {"id": "1", "name": "new"},
        old=old if old is not None else {"id": "1", "name": "old"},
    )


class TestResolutionPath:
    def test_pinned_path_ignores_caller(self, namespaces):
        function = StoredFunction("f", (("updated_at", "now()"),), resolution_path=("pg_catalog", "public"))
        result = FunctionExecutor(namespaces).invoke(function, make_context())
        assert result["updated_at"] == STARTED

    def test_unpinned_inherits_caller_path(self, namespaces):
        """The caller's path puts public first, so its now() wins."""
        function = StoredFunction("f", (("updated_at", "now()"),))
        result = FunctionExecutor(namespaces).invoke(function, make_context())
        assert result["updated_at"] == datetime(1999, 1, 1, tzinfo=timezone.utc)

    def test_unresolvable_call(self, namespaces):
        function = StoredFunction("f", (("updated_at", "now()"),), resolution_path=("public_missing",))
        with pytest.raises(UnresolvedFunctionError):
            FunctionExecutor(namespaces).invoke(function, make_context())


class TestIdentity:
    def test_definer_runs_as_owner(self, namespaces):
        function = StoredFunction(
            "f",
            (("modified_by", "current_user()"), ("actor", "session_user()")),
            security=ExecutionSecurity.DEFINER,
            owner="postgres",
            resolution_path=("pg_catalog",),
        )
        result = FunctionExecutor(namespaces).invoke(function, make_context())
        assert result["modified_by"] == "postgres"
        assert result["actor"] == "user_1"

    def test_invoker_runs_as_actor_role(self, namespaces):
        function = StoredFunction("f", (("modified_by", "current_user()"),), resolution_path=("pg_catalog",))
        result = FunctionExecutor(namespaces).invoke(function, make_context())
        assert result["modified_by"] == "authenticated"


class TestAssignments:
    def test_does_not_mutate_context_row(self, namespaces):
        context = make_context()
        function = StoredFunction("f", (("updated_at", "now()"),), resolution_path=("pg_catalog",))
        result = FunctionExecutor(namespaces).invoke(function, context)
        assert "updated_at" not in context.new
        assert result["name"] == "new"

    def test_assignments_see_earlier_assignments_and_old_row(self, namespaces):
        function = StoredFunction(
            "f",
            (("previous", "old.name"), ("copy", "new.previous")),
            resolution_path=("pg_catalog",),
        )
        result = FunctionExecutor(namespaces).invoke(function, make_context())
        assert result["previous"] == "old"
        assert result["copy"] == "old"
