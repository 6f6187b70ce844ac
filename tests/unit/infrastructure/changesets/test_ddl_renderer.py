"""Unit tests for PostgreSQL DDL rendering."""

import pytest

from rowguard.domain.entities import Index, OperationScope, Rule, StoredFunction, Trigger
from rowguard.domain.services import build_maintainer_function
from rowguard.infrastructure.changesets import (
    ChangeSetBuilder,
    CreateIndex,
    DropIndexIfExists,
    DropRuleIfExists,
    EnableAccessControl,
    SchemaOperation,
    render_operation,
    render_script,
)
from rowguard.infrastructure.changesets.ddl_renderer import render_function, render_rule, render_trigger

HARDENED_FUNCTION = build_maintainer_function("updated_at", ("pg_catalog", "public"), "postgres")


class TestRenderRule:
    def test_select_rule(self):
        rule = Rule("Allow public read access on app_kv", OperationScope.SELECT, using="true")
        assert render_rule("app_kv", rule) == (
            'CREATE POLICY "Allow public read access on app_kv"\n'
            "  ON app_kv FOR SELECT\n"
            "  USING (true);"
        )

    def test_update_rule_with_roles(self):
        rule = Rule(
            "own",
            OperationScope.UPDATE,
            using="owner_id == auth.id",
            check="owner_id == auth.id",
            roles=("authenticated",),
        )
        assert render_rule("notes", rule) == (
            "CREATE POLICY own\n"
            "  ON notes FOR UPDATE\n"
            "  TO authenticated\n"
            "  USING (owner_id = auth.uid())\n"
            "  WITH CHECK (owner_id = auth.uid());"
        )

    def test_insert_rule(self):
        rule = Rule("ins", OperationScope.INSERT, check="true")
        assert render_rule("app_kv", rule).endswith("FOR INSERT\n  WITH CHECK (true);")


class TestRenderFunction:
    def test_hardened_function(self):
        assert render_function(HARDENED_FUNCTION) == (
            "CREATE OR REPLACE FUNCTION update_updated_at_column()\n"
            "RETURNS TRIGGER AS $$\n"
            "BEGIN\n"
            "  NEW.updated_at = now();\n"
            "  RETURN NEW;\n"
            "END;\n"
            "$$ LANGUAGE plpgsql\n"
            "SECURITY DEFINER\n"
            "SET search_path = pg_catalog, public;"
        )

    def test_unpinned_invoker_function(self):
        sql = render_function(StoredFunction("update_updated_at_column", (("updated_at", "now()"),)))
        assert "SECURITY DEFINER" not in sql
        assert "search_path" not in sql
        assert sql.endswith("$$ LANGUAGE plpgsql;")


class TestRenderOperations:
    def test_trigger(self):
        trigger = Trigger("update_items_updated_at", "items", "update_updated_at_column")
        assert render_trigger(trigger) == (
            "CREATE TRIGGER update_items_updated_at BEFORE UPDATE ON items\n"
            "  FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();"
        )

    def test_simple_statements(self):
        assert render_operation(DropIndexIfExists("idx_items_tags")) == ["DROP INDEX IF EXISTS idx_items_tags;"]
        assert render_operation(DropRuleIfExists("items", "Allow all operations on items")) == [
            'DROP POLICY IF EXISTS "Allow all operations on items" ON items;'
        ]
        assert render_operation(EnableAccessControl("app_kv")) == ["ALTER TABLE app_kv ENABLE ROW LEVEL SECURITY;"]

    def test_create_index(self):
        assert render_operation(CreateIndex(Index("idx_items_tags", "items", ("tags",), method="gin"))) == [
            "CREATE INDEX IF NOT EXISTS idx_items_tags ON items USING gin (tags);"
        ]
        assert render_operation(CreateIndex(Index("idx_a", "items", ("a", "b")))) == [
            "CREATE INDEX IF NOT EXISTS idx_a ON items (a, b);"
        ]

    def test_rebind_renders_drop_create_and_triggers(self):
        change_set = ChangeSetBuilder("cs").rebind_maintainer(HARDENED_FUNCTION, ["items", "orders"]).build()
        statements = render_operation(change_set.operations[0])

        assert statements[0] == "DROP FUNCTION IF EXISTS update_updated_at_column() CASCADE;"
        assert statements[1].startswith("CREATE OR REPLACE FUNCTION")
        assert [s.split()[2] for s in statements[2:]] == ["update_items_updated_at", "update_orders_updated_at"]

    def test_unknown_operation(self):
        class Custom(SchemaOperation):
            pass

        with pytest.raises(TypeError, match="Cannot render operation Custom"):
            render_operation(Custom())


def test_render_script():
    change_set = ChangeSetBuilder("cs_1", "Drop things").drop_index("a").drop_index("b").build()
    assert render_script(change_set) == (
        "-- cs_1\n"
        "-- Drop things\n"
        "DROP INDEX IF EXISTS a;\n"
        "\n"
        "DROP INDEX IF EXISTS b;\n"
    )
