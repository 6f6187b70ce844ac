"""Catalog model and JSON snapshots."""

from rowguard.infrastructure.catalog.catalog import POLICY_RESOLUTION_PATH, Catalog
from rowguard.infrastructure.catalog.snapshot import (
    CatalogSnapshot,
    catalog_from_snapshot,
    dump_catalog,
    load_catalog,
    snapshot_from_catalog,
)

__all__ = [
    "Catalog",
    "CatalogSnapshot",
    "POLICY_RESOLUTION_PATH",
    "catalog_from_snapshot",
    "dump_catalog",
    "load_catalog",
    "snapshot_from_catalog",
]
