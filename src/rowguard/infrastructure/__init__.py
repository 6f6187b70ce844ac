"""Infrastructure layer - External dependencies and implementations.

This layer contains:
- The in-memory catalog and its JSON snapshots
- Change-set operations, applicator and DDL rendering
- Database adapters (SQLAlchemy) for the change-set ledger
- Index usage telemetry from PostgreSQL statistics views
"""

from rowguard.infrastructure.persistence.database import (
    Base,
    DatabaseManager,
    get_db_manager,
    init_database,
)

__all__ = [
    "Base",
    "DatabaseManager",
    "get_db_manager",
    "init_database",
]
