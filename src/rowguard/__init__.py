"""RowGuard - row-level access rules and audit-column maintenance.

Models a data store's collections, access rules, trigger functions and
triggers, and applies ordered, idempotent schema change-sets to them.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
