"""Pytest configuration for all tests."""

from typing import Generator

import pytest
import structlog

from rowguard.core.config import get_settings
from rowguard.core.logging import clear_context
from rowguard.domain.entities import ActorContext, TransactionContext
from rowguard.infrastructure.catalog import Catalog


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Reload settings and reset logging around every test.

    CLI tests configure structlog to write to captured streams that are
    closed once the test ends.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    clear_context()
    structlog.reset_defaults()


@pytest.fixture
def actor() -> ActorContext:
    return ActorContext(actor_id="user_1", role="authenticated")


@pytest.fixture
def transaction() -> TransactionContext:
    return TransactionContext()


@pytest.fixture
def catalog() -> Catalog:
    return Catalog(allow_unprotected_access=False)
