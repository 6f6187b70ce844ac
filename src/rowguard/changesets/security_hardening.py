"""Security hardening change-set (20251025085456_fix_security_issues).

Fixes the issues a database audit found in the ordering application's
schema:

1. Drops seven indexes that never served a scan.
2. Drops the "Allow all operations on <t>" rules that sat next to
   operation-specific rules on the same collection. Collections whose only
   rule is the ALL rule (orders, completed_orders, current_order_metadata)
   keep it.
3. Enables access control on ``app_kv`` with one public rule per operation.
4. Rebinds ``update_updated_at_column`` as SECURITY DEFINER with a pinned
   resolution path and recreates its BEFORE UPDATE triggers.

``build_legacy_catalog`` reproduces the schema as it was before this
change-set, for auditing and tests.
"""

from rowguard.domain.entities.index import Index
from rowguard.domain.entities.rule import OperationScope, Rule
from rowguard.domain.entities.stored_function import ExecutionSecurity, StoredFunction
from rowguard.domain.entities.trigger import Trigger
from rowguard.domain.services.audit_maintainer import (
    build_maintainer_function,
    maintainer_function_name,
    maintainer_trigger_name,
)
from rowguard.infrastructure.catalog import Catalog
from rowguard.infrastructure.changesets import ChangeSet, ChangeSetBuilder

CHANGE_SET_ID = "20251025085456_fix_security_issues"
DESCRIPTION = "Fix security issues: unused indexes, duplicate rules, app_kv access control, maintainer search path"

AUDIT_ATTRIBUTE = "updated_at"
MAINTAINER_RESOLUTION_PATH = ("pg_catalog", "public")
MAINTAINER_OWNER = "postgres"

# Column guesses for the dropped indexes; only needed to recreate them.
UNUSED_INDEXES = (
    Index("idx_items_supplier", "items", ("supplier_id",)),
    Index("idx_items_category", "items", ("category_id",)),
    Index("idx_pending_orders_status", "pending_orders", ("status",)),
    Index("idx_pending_orders_store_tag", "pending_orders", ("store_tag",)),
    Index("idx_pending_orders_supplier", "pending_orders", ("supplier_id",)),
    Index("idx_items_tags", "items", ("tags",), method="gin"),
    Index("idx_app_kv_user_id", "app_kv", ("user_id",)),
)

DUPLICATE_RULE_COLLECTIONS = (
    "categories",
    "current_order",
    "items",
    "pending_orders",
    "settings",
    "suppliers",
    "tags",
)

ALL_RULE_ONLY_COLLECTIONS = ("orders", "completed_orders", "current_order_metadata")

MAINTAINED_COLLECTIONS = (
    "categories",
    "suppliers",
    "tags",
    "items",
    "orders",
    "completed_orders",
    "pending_orders",
    "current_order_metadata",
    "settings",
    "current_order",
)

KV_COLLECTION = "app_kv"

COLLECTION_COLUMNS = {
    "categories": ("id", "name", "created_at", "updated_at"),
    "suppliers": ("id", "name", "contact", "created_at", "updated_at"),
    "tags": ("id", "name", "created_at", "updated_at"),
    "items": ("id", "name", "supplier_id", "category_id", "tags", "created_at", "updated_at"),
    "orders": ("id", "supplier_id", "status", "created_at", "updated_at"),
    "completed_orders": ("id", "order_id", "completed_at", "created_at", "updated_at"),
    "pending_orders": ("id", "supplier_id", "status", "store_tag", "created_at", "updated_at"),
    "current_order_metadata": ("id", "order_id", "note", "created_at", "updated_at"),
    "settings": ("id", "key", "value", "created_at", "updated_at"),
    "current_order": ("id", "item_id", "quantity", "created_at", "updated_at"),
    "app_kv": ("id", "user_id", "key", "value"),
}


def all_operations_rule(collection: str) -> Rule:
    return Rule(f"Allow all operations on {collection}", OperationScope.ALL, using="true", check="true")


def public_rules(collection: str) -> list[Rule]:
    """One permissive public rule per operation."""
    return [
        Rule(f"Allow public read access on {collection}", OperationScope.SELECT, using="true"),
        Rule(f"Allow public insert on {collection}", OperationScope.INSERT, check="true"),
        Rule(f"Allow public update on {collection}", OperationScope.UPDATE, using="true", check="true"),
        Rule(f"Allow public delete on {collection}", OperationScope.DELETE, using="true"),
    ]


def maintainer_function() -> StoredFunction:
    return build_maintainer_function(AUDIT_ATTRIBUTE, MAINTAINER_RESOLUTION_PATH, MAINTAINER_OWNER)


def build_change_set() -> ChangeSet:
    """Build the security hardening change-set."""
    builder = ChangeSetBuilder(CHANGE_SET_ID, DESCRIPTION)

    for index in UNUSED_INDEXES:
        builder.drop_index(index.name)

    for collection in DUPLICATE_RULE_COLLECTIONS:
        builder.drop_rule(collection, all_operations_rule(collection).name)

    builder.enable_access_control(KV_COLLECTION)
    for rule in public_rules(KV_COLLECTION):
        builder.create_rule(KV_COLLECTION, rule)

    builder.rebind_maintainer(maintainer_function(), MAINTAINED_COLLECTIONS, AUDIT_ATTRIBUTE)
    return builder.build()


def build_legacy_catalog(allow_unprotected_access: bool | None = None) -> Catalog:
    """The schema as it was before the hardening change-set.

    Every collection except ``app_kv`` has access control enabled. The
    duplicate-rule collections carry both an ALL rule and four specific
    rules. The maintainer function runs as the invoker and inherits the
    caller's search path.
    """
    catalog = Catalog(allow_unprotected_access=allow_unprotected_access)

    for collection, columns in COLLECTION_COLUMNS.items():
        catalog.create_collection(collection, columns)

    for collection in DUPLICATE_RULE_COLLECTIONS:
        catalog.enable_access_control(collection)
        for rule in public_rules(collection):
            catalog.create_rule(collection, rule)
        catalog.create_rule(collection, all_operations_rule(collection), allow_ambiguous=True)

    for collection in ALL_RULE_ONLY_COLLECTIONS:
        catalog.enable_access_control(collection)
        catalog.create_rule(collection, all_operations_rule(collection))

    for index in UNUSED_INDEXES:
        catalog.create_index(index)

    catalog.create_function(
        StoredFunction(
            name=maintainer_function_name(AUDIT_ATTRIBUTE),
            assignments=((AUDIT_ATTRIBUTE, "now()"),),
            security=ExecutionSecurity.INVOKER,
            owner=MAINTAINER_OWNER,
            resolution_path=None,
        )
    )
    for collection in MAINTAINED_COLLECTIONS:
        catalog.create_trigger(
            Trigger(
                name=maintainer_trigger_name(collection, AUDIT_ATTRIBUTE),
                collection=collection,
                function_name=maintainer_function_name(AUDIT_ATTRIBUTE),
            )
        )

    return catalog
