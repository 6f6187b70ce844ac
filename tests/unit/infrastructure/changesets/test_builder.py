"""Unit tests for ChangeSetBuilder."""

import pytest

from rowguard.domain.entities import IndexUsage, OperationScope, Rule
from rowguard.domain.services import build_maintainer_function
from rowguard.infrastructure.changesets import (
    ChangeSetBuilder,
    CreateRule,
    DropIndexIfExists,
    EnableAccessControl,
    RebindFunction,
)


def test_chained_calls_keep_order():
    change_set = (
        ChangeSetBuilder("cs_1", "Fix things")
        .drop_index("idx_a")
        .enable_access_control("app_kv")
        .create_rule("app_kv", Rule("read", OperationScope.SELECT, using="true"))
        .build()
    )

    assert change_set.id == "cs_1"
    assert change_set.description == "Fix things"
    assert [type(op) for op in change_set.operations] == [DropIndexIfExists, EnableAccessControl, CreateRule]


def test_empty_change_set_rejected():
    with pytest.raises(ValueError, match="has no operations"):
        ChangeSetBuilder("cs_1").build()


def test_rebind_maintainer_builds_triggers():
    function = build_maintainer_function("updated_at", ("pg_catalog", "public"), "postgres")
    change_set = ChangeSetBuilder("cs_1").rebind_maintainer(function, ["items", "orders"]).build()

    (op,) = change_set.operations
    assert isinstance(op, RebindFunction)
    assert [t.name for t in op.triggers] == ["update_items_updated_at", "update_orders_updated_at"]
    assert all(t.function_name == "update_updated_at_column" for t in op.triggers)


def test_drop_unused_indexes_uses_window():
    usages = [
        IndexUsage("idx_old", "items", scans=0, observed_days=30),
        IndexUsage("idx_fresh", "items", scans=0, observed_days=3),
        IndexUsage("idx_busy", "items", scans=40, observed_days=30),
    ]
    change_set = ChangeSetBuilder("cs_1").drop_unused_indexes(usages, min_window_days=14).build()
    assert [op.name for op in change_set.operations] == ["idx_old"]


def test_drop_unused_indexes_default_window(monkeypatch):
    monkeypatch.setenv("ROWGUARD_INDEX_MIN_OBSERVATION_DAYS", "2")
    usages = [IndexUsage("idx_fresh", "items", scans=0, observed_days=3)]
    change_set = ChangeSetBuilder("cs_1").drop_unused_indexes(usages).build()
    assert [op.name for op in change_set.operations] == ["idx_fresh"]
