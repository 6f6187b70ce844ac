"""Unit tests for PolicyAuditor."""

from rowguard.domain.entities import OperationScope, Rule, StoredFunction, Trigger
from rowguard.domain.services import AuditColumnMaintainer, PolicyAuditor
from rowguard.infrastructure.catalog import Catalog


def clean_catalog():
    catalog = Catalog(allow_unprotected_access=False)
    catalog.create_collection("items", ("id", "owner_id", "updated_at"))
    catalog.enable_access_control("items")
    catalog.create_rule("items", Rule("own", OperationScope.SELECT, using="owner_id == auth.id"))
    AuditColumnMaintainer(catalog, resolution_path=("pg_catalog", "public"), owner="postgres").register("items")
    return catalog


class TestAudit:
    def test_clean_catalog(self):
        report = PolicyAuditor(clean_catalog()).audit()
        assert report.is_clean
        assert report.findings() == []

    def test_ambiguous_rules(self):
        catalog = clean_catalog()
        catalog.create_rule("items", Rule("all", OperationScope.ALL, using="true"), allow_ambiguous=True)

        report = PolicyAuditor(catalog).audit()

        assert report.ambiguous == [("items", ["all"])]
        assert "items: ALL-scoped rules next to specific rules: all" in report.findings()

    def test_unprotected_sensitive(self):
        catalog = clean_catalog()
        catalog.create_collection("app_kv", ("id", "key"))
        catalog.create_collection("public_docs", ("id",), access_sensitive=False)

        report = PolicyAuditor(catalog).audit()

        assert report.unprotected_sensitive == ["app_kv"]

    def test_unpinned_function(self):
        catalog = clean_catalog()
        catalog.create_function(StoredFunction("touch", (("touched_at", "now()"),)))

        report = PolicyAuditor(catalog).audit()

        assert report.unpinned_functions == ["touch"]
        assert "function touch: resolution path not pinned" in report.findings()

    def test_dangling_trigger_and_missing_maintainer(self):
        catalog = clean_catalog()
        catalog.create_collection("tags", ("id", "updated_at"))
        catalog.enable_access_control("tags")
        catalog.create_trigger(Trigger("update_tags_updated_at", "tags", "gone"), require_function=False)

        report = PolicyAuditor(catalog).audit()

        assert report.dangling_triggers == [("tags", "update_tags_updated_at", "gone")]
        assert report.missing_maintainers == ["tags"]

    def test_custom_audit_attribute(self):
        catalog = clean_catalog()
        assert PolicyAuditor(catalog, audit_attribute="modified_at").audit().is_clean


class TestReferences:
    def test_column_references(self):
        catalog = clean_catalog()
        assert PolicyAuditor(catalog).references("owner_id") == ["rule items.own"]

    def test_function_and_row_references(self):
        catalog = clean_catalog()
        assert PolicyAuditor(catalog).references("now") == ["function update_updated_at_column"]

    def test_unreferenced(self):
        assert PolicyAuditor(clean_catalog()).references("supplier_id") == []
