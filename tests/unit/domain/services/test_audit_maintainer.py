"""Unit tests for the audit column maintainer."""

from datetime import datetime, timezone

import pytest

from rowguard.domain.entities import (
    ActorContext,
    ExecutionSecurity,
    OperationScope,
    Rule,
    TransactionContext,
    TriggerContext,
)
from rowguard.domain.exceptions import MissingCollectionError, UnresolvedMaintainerFunctionError
from rowguard.domain.services import (
    AuditColumnMaintainer,
    build_maintainer_function,
    maintainer_function_name,
    maintainer_trigger_name,
)
from rowguard.infrastructure.catalog import Catalog


@pytest.fixture
def catalog():
    catalog = Catalog(allow_unprotected_access=False)
    catalog.create_collection("items", ("id", "name", "updated_at"))
    catalog.enable_access_control("items")
    catalog.create_rule("items", Rule("Allow all operations on items", OperationScope.ALL, using="true", check="true"))
    return catalog


class TestNaming:
    def test_names(self):
        assert maintainer_function_name("updated_at") == "update_updated_at_column"
        assert maintainer_trigger_name("items", "updated_at") == "update_items_updated_at"

    def test_build_function(self):
        function = build_maintainer_function("updated_at", ["pg_catalog", "public"], "postgres")
        assert function.security is ExecutionSecurity.DEFINER
        assert function.resolution_path == ("pg_catalog", "public")
        assert function.assignments == (("updated_at", "now()"),)


class TestRegister:
    def test_register_creates_function_and_trigger(self, catalog):
        trigger = AuditColumnMaintainer(catalog).register("items")

        assert trigger.name == "update_items_updated_at"
        assert trigger.timing == "BEFORE"
        assert trigger.event == "UPDATE"
        function = catalog.get_function("update_updated_at_column")
        assert function.is_pinned
        assert function.owner == "postgres"

    def test_register_uses_settings_defaults(self, catalog, monkeypatch):
        monkeypatch.setenv("ROWGUARD_MAINTAINER_OWNER", "app_owner")
        monkeypatch.setenv("ROWGUARD_MAINTAINER_RESOLUTION_PATH", "pg_catalog")

        AuditColumnMaintainer(catalog).register("items")

        function = catalog.get_function("update_updated_at_column")
        assert function.owner == "app_owner"
        assert function.resolution_path == ("pg_catalog",)

    def test_register_twice_is_noop(self, catalog):
        maintainer = AuditColumnMaintainer(catalog)
        maintainer.register("items")
        maintainer.register("items")
        assert len(catalog.dependents_of("update_updated_at_column")) == 1

    def test_register_missing_collection(self, catalog):
        with pytest.raises(MissingCollectionError):
            AuditColumnMaintainer(catalog).register("nope")

    def test_existing_function_is_reused(self, catalog):
        maintainer = AuditColumnMaintainer(catalog, resolution_path=("pg_catalog",), owner="first")
        maintainer.register("items")

        catalog.create_collection("tags", ("id", "updated_at"))
        AuditColumnMaintainer(catalog, resolution_path=("pg_catalog",), owner="second").register("tags")

        assert catalog.get_function("update_updated_at_column").owner == "first"


class TestOnBeforeUpdate:
    def test_sets_transaction_time(self, catalog, actor):
        maintainer = AuditColumnMaintainer(catalog)
        maintainer.register("items")
        started = datetime(2025, 10, 25, tzinfo=timezone.utc)
        context = TriggerContext(
            collection="items",
            timing="BEFORE",
            event="UPDATE",
            actor=actor,
            transaction=TransactionContext(started_at=started),
        )

        row = maintainer.on_before_update({"id": "1", "updated_at": "caller value"}, context)

        assert row["updated_at"] == started

    def test_missing_function(self, catalog, actor):
        context = TriggerContext("items", "BEFORE", "UPDATE", actor, TransactionContext())
        with pytest.raises(UnresolvedMaintainerFunctionError) as exc_info:
            AuditColumnMaintainer(catalog).on_before_update({"id": "1"}, context)
        assert exc_info.value.trigger == "update_items_updated_at"
        assert exc_info.value.function == "update_updated_at_column"


class TestThroughCatalog:
    def test_update_sets_attribute(self, catalog):
        AuditColumnMaintainer(catalog).register("items")
        actor = ActorContext("user_1")
        catalog.insert("items", {"id": "1", "name": "a", "updated_at": None}, actor)

        with catalog.transaction() as tx:
            row = catalog.update("items", "1", {"name": "b", "updated_at": "forged"}, actor, transaction=tx)

        assert row["updated_at"] == tx.started_at
        assert row["name"] == "b"

    def test_insert_not_maintained(self, catalog):
        AuditColumnMaintainer(catalog).register("items")
        row = catalog.insert("items", {"id": "1", "updated_at": None}, ActorContext("user_1"))
        assert row["updated_at"] is None
