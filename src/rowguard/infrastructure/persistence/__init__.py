"""Persistence layer (SQLAlchemy async) for the change-set ledger."""
