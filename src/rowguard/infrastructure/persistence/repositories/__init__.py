"""Repositories for RowGuard persistence."""

from rowguard.infrastructure.persistence.repositories.change_set_repository import ChangeSetRepository

__all__ = ["ChangeSetRepository"]
