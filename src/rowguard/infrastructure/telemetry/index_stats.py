"""Index usage telemetry from PostgreSQL statistics views.

Reads scan counts from ``pg_stat_user_indexes``. The observation window is
the time since the database statistics were last reset; when they have
never been reset the window is unknown and the record is not evidence
that an index is unused. Unique and primary-key indexes enforce
constraints and are never reported.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from rowguard.core.logging import get_logger
from rowguard.domain.entities.index import IndexUsage

logger = get_logger(__name__)

INDEX_USAGE_SQL = text(
    """
    SELECT
        s.indexrelname AS index_name,
        s.relname AS collection,
        s.idx_scan AS scans,
        EXTRACT(EPOCH FROM (now() - d.stats_reset)) / 86400.0 AS observed_days
    FROM pg_stat_user_indexes s
    JOIN pg_index i ON i.indexrelid = s.indexrelid
    JOIN pg_stat_database d ON d.datname = current_database()
    WHERE s.schemaname = :schema
      AND NOT i.indisunique
      AND NOT i.indisprimary
    ORDER BY s.relname, s.indexrelname
    """
)


async def fetch_index_usage(session: AsyncSession, schema: str = "public") -> list[IndexUsage]:
    """Read index usage for one schema.

    Args:
        session: Session connected to the PostgreSQL database to inspect.
        schema: Schema whose indexes are read.

    Returns:
        One IndexUsage per non-unique index.
    """
    result = await session.execute(INDEX_USAGE_SQL, {"schema": schema})
    usages = [
        IndexUsage(
            index_name=row.index_name,
            collection=row.collection,
            scans=int(row.scans or 0),
            observed_days=float(row.observed_days) if row.observed_days is not None else None,
        )
        for row in result
    ]
    logger.info("Index usage fetched", schema=schema, index_count=len(usages))
    return usages
