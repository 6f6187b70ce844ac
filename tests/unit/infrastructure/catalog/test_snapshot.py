"""Unit tests for JSON catalog snapshots."""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from rowguard.changesets.security_hardening import build_change_set, build_legacy_catalog
from rowguard.domain.entities import ActorContext, ExecutionSecurity, OperationScope
from rowguard.infrastructure.catalog import (
    CatalogSnapshot,
    catalog_from_snapshot,
    dump_catalog,
    load_catalog,
    snapshot_from_catalog,
)

LEGACY_SNAPSHOT = {
    "version": 1,
    "collections": [
        {
            "name": "items",
            "columns": ["id", "name", "updated_at"],
            "access_control_enabled": True,
            "rules": [
                {"name": "Allow public read access on items", "scope": "SELECT", "using": "true"},
                {"name": "Allow all operations on items", "scope": "ALL", "using": "true", "check": "true"},
            ],
            "rows": [{"id": "1", "name": "widget", "updated_at": None}],
        },
        {"name": "app_kv", "columns": ["id", "key"]},
    ],
    "functions": [
        {
            "name": "update_updated_at_column",
            "assignments": [{"attribute": "updated_at", "expression": "now()"}],
        }
    ],
    "triggers": [
        {"name": "update_items_updated_at", "collection": "items", "function": "update_updated_at_column"},
        {"name": "orphan", "collection": "items", "function": "gone", "timing": "before", "event": "update"},
    ],
    "indexes": [{"name": "idx_items_name", "collection": "items", "columns": ["name"]}],
}


class TestSnapshotModels:
    def test_defaults(self):
        snapshot = CatalogSnapshot.model_validate({"collections": [{"name": "items"}]})
        collection = snapshot.collections[0]
        assert collection.access_control_enabled is False
        assert collection.access_sensitive is True

    def test_unsupported_version(self):
        with pytest.raises(ValidationError, match="Unsupported snapshot version"):
            CatalogSnapshot.model_validate({"version": 2})

    def test_trigger_timing_normalized(self):
        snapshot = CatalogSnapshot.model_validate(LEGACY_SNAPSHOT)
        assert snapshot.triggers[1].timing == "BEFORE"
        assert snapshot.triggers[1].event == "UPDATE"

    def test_index_needs_columns(self):
        with pytest.raises(ValidationError):
            CatalogSnapshot.model_validate({"indexes": [{"name": "i", "collection": "c", "columns": []}]})


class TestCatalogFromSnapshot:
    """Loading reproduces legacy state, including states DDL would reject."""

    def test_reproduces_ambiguous_rules(self):
        catalog = catalog_from_snapshot(CatalogSnapshot.model_validate(LEGACY_SNAPSHOT), allow_unprotected_access=False)
        items = catalog.get_collection("items")

        assert items.access_control_enabled is True
        assert items.rules["Allow all operations on items"].scope is OperationScope.ALL
        assert len(items.rules) == 2

    def test_reproduces_unpinned_function_and_dangling_trigger(self):
        catalog = catalog_from_snapshot(CatalogSnapshot.model_validate(LEGACY_SNAPSHOT), allow_unprotected_access=False)

        function = catalog.get_function("update_updated_at_column")
        assert function.security is ExecutionSecurity.INVOKER
        assert not function.is_pinned
        assert ("items", "orphan", "BEFORE", "UPDATE", "gone") in catalog.trigger_bindings()

    def test_rows_and_indexes(self):
        catalog = catalog_from_snapshot(CatalogSnapshot.model_validate(LEGACY_SNAPSHOT), allow_unprotected_access=False)
        assert catalog.rows["items"]["1"]["name"] == "widget"
        assert "idx_items_name" in catalog.indexes
        assert catalog.get_collection("app_kv").access_control_enabled is False

    def test_row_without_id(self):
        data = {"collections": [{"name": "items", "rows": [{"name": "x"}]}]}
        with pytest.raises(ValueError, match="has no id"):
            catalog_from_snapshot(CatalogSnapshot.model_validate(data), allow_unprotected_access=False)

    def test_custom_schemas(self):
        catalog = catalog_from_snapshot(
            CatalogSnapshot.model_validate({"schemas": ["extensions"]}), allow_unprotected_access=False
        )
        assert "extensions" in catalog.namespaces


class TestRoundTrip:
    def test_snapshot_from_catalog_matches_input(self):
        catalog = catalog_from_snapshot(CatalogSnapshot.model_validate(LEGACY_SNAPSHOT), allow_unprotected_access=False)
        snapshot = snapshot_from_catalog(catalog)

        assert [c.name for c in snapshot.collections] == ["app_kv", "items"]
        assert snapshot.functions[0].resolution_path is None
        assert {t.name for t in snapshot.triggers} == {"update_items_updated_at", "orphan"}

    def test_dump_and_load(self, tmp_path):
        catalog = catalog_from_snapshot(CatalogSnapshot.model_validate(LEGACY_SNAPSHOT), allow_unprotected_access=False)
        path = tmp_path / "nested" / "catalog.json"

        dump_catalog(catalog, path)
        data = json.loads(path.read_text(encoding="utf-8"))
        loaded = load_catalog(path, allow_unprotected_access=False)

        assert data["version"] == 1
        assert loaded.trigger_bindings() == catalog.trigger_bindings()
        assert loaded.get_collection("items").rules == catalog.get_collection("items").rules

    def test_timestamps_survive_dump_and_load(self, tmp_path):
        catalog = build_legacy_catalog(allow_unprotected_access=False)
        for operation in build_change_set().operations:
            operation.apply(catalog)
        actor = ActorContext("user_1", "authenticated")
        catalog.insert("items", {"id": "1", "name": "widget"}, actor)
        updated = catalog.update("items", "1", {"name": "gadget"}, actor)
        path = tmp_path / "catalog.json"

        dump_catalog(catalog, path)
        loaded = load_catalog(path, allow_unprotected_access=False)

        row = loaded.rows["items"]["1"]
        assert isinstance(row["updated_at"], datetime)
        assert row["updated_at"] == updated["updated_at"]
        assert loaded.catalog_id == catalog.catalog_id

    def test_iso_strings_in_other_columns_stay_strings(self):
        data = {
            "collections": [
                {
                    "name": "notes",
                    "timestamp_columns": ["updated_at"],
                    "rows": [{"id": "1", "body": "2025-01-01T00:00:00Z", "updated_at": "2025-01-01T00:00:00Z"}],
                }
            ]
        }
        row = CatalogSnapshot.model_validate(data).collections[0].rows[0]

        assert row["body"] == "2025-01-01T00:00:00Z"
        assert row["updated_at"] == datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestCatalogIdentity:
    def test_snapshot_keeps_catalog_id(self):
        catalog = catalog_from_snapshot(
            CatalogSnapshot.model_validate({"catalog_id": "store_a"}), allow_unprotected_access=False
        )
        assert catalog.catalog_id == "store_a"
        assert snapshot_from_catalog(catalog).catalog_id == "store_a"

    def test_missing_catalog_id_is_generated(self):
        first = catalog_from_snapshot(CatalogSnapshot.model_validate({}), allow_unprotected_access=False)
        second = catalog_from_snapshot(CatalogSnapshot.model_validate({}), allow_unprotected_access=False)
        assert first.catalog_id
        assert first.catalog_id != second.catalog_id
