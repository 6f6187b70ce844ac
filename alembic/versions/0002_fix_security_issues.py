"""fix_security_issues

Runs the security hardening change-set against a PostgreSQL database and
records it in the ledger. Other dialects have no row-level security, so
the revision is a no-op there.

Revision ID: 0002
Revises: 0001
Create Date: 2025-10-25 08:54:56

"""

from collections.abc import Sequence
from datetime import datetime, timezone

import sqlalchemy as sa
from alembic import op

from rowguard.changesets import security_hardening
from rowguard.core.rules.sql_compiler import quote_identifier
from rowguard.domain.entities.stored_function import ExecutionSecurity, StoredFunction
from rowguard.infrastructure.changesets import CreateIndex, CreateRule, render_change_set, render_operation
from rowguard.infrastructure.changesets.ddl_renderer import render_function
from rowguard.infrastructure.persistence.models.change_set import DATABASE_CATALOG_ID

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | Sequence[str] | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _is_postgresql() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    """Apply the hardening DDL and record the change-set."""
    if not _is_postgresql():
        return

    change_set = security_hardening.build_change_set()
    for statement in render_change_set(change_set):
        op.execute(statement)

    ledger = sa.table(
        "applied_change_sets",
        sa.column("catalog_id", sa.String),
        sa.column("change_set_id", sa.String),
        sa.column("checksum", sa.String),
        sa.column("status", sa.String),
        sa.column("applied_steps", sa.Integer),
        sa.column("total_steps", sa.Integer),
        sa.column("applied_at", sa.DateTime(timezone=True)),
    )
    op.bulk_insert(
        ledger,
        [
            {
                "catalog_id": DATABASE_CATALOG_ID,
                "change_set_id": change_set.id,
                "checksum": change_set.checksum,
                "status": "applied",
                "applied_steps": len(change_set),
                "total_steps": len(change_set),
                "applied_at": datetime.now(timezone.utc),
            }
        ],
    )


def downgrade() -> None:
    """Restore the dropped indexes and rules and the previous function definition."""
    if not _is_postgresql():
        return

    kv = security_hardening.KV_COLLECTION
    for rule in security_hardening.public_rules(kv):
        op.execute(f"DROP POLICY IF EXISTS {quote_identifier(rule.name)} ON {kv};")
    op.execute(f"ALTER TABLE {kv} DISABLE ROW LEVEL SECURITY;")

    for collection in security_hardening.DUPLICATE_RULE_COLLECTIONS:
        rule = security_hardening.all_operations_rule(collection)
        for statement in render_operation(CreateRule(collection, rule)):
            op.execute(statement)

    for index in security_hardening.UNUSED_INDEXES:
        for statement in render_operation(CreateIndex(index)):
            op.execute(statement)

    legacy = StoredFunction(
        name="update_updated_at_column",
        assignments=((security_hardening.AUDIT_ATTRIBUTE, "now()"),),
        security=ExecutionSecurity.INVOKER,
    )
    op.execute(render_function(legacy))
    op.execute("ALTER FUNCTION update_updated_at_column() SECURITY INVOKER RESET search_path;")

    op.execute(
        sa.text(
            "DELETE FROM applied_change_sets WHERE catalog_id = :catalog_id AND change_set_id = :change_set_id"
        ).bindparams(catalog_id=DATABASE_CATALOG_ID, change_set_id=security_hardening.CHANGE_SET_ID)
    )
