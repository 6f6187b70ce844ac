"""create_applied_change_sets_table

Revision ID: 0001
Revises:
Create Date: 2025-10-25 08:54:56

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the change-set ledger table."""
    op.create_table(
        "applied_change_sets",
        sa.Column(
            "catalog_id",
            sa.String(length=64),
            nullable=False,
            comment="Catalog the change-set was applied to",
        ),
        sa.Column("change_set_id", sa.String(length=255), nullable=False, comment="Change-set identifier"),
        sa.Column(
            "checksum",
            sa.String(length=64),
            nullable=False,
            comment="SHA-256 of the change-set operations",
        ),
        sa.Column("status", sa.String(length=16), nullable=False, comment="applied or partial"),
        sa.Column("applied_steps", sa.Integer(), nullable=False),
        sa.Column("total_steps", sa.Integer(), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("catalog_id", "change_set_id"),
    )


def downgrade() -> None:
    """Drop the change-set ledger table."""
    op.drop_table("applied_change_sets")
