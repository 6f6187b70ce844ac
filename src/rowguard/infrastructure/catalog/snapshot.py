"""JSON catalog snapshots.

A snapshot records the schema objects of a catalog (collections with their
rules and rows, trigger functions, triggers and indexes) so a catalog can
be audited or hardened offline. Loading a snapshot reproduces the recorded
state exactly, including states that could not be created through the
normal DDL path (ALL rules next to specific rules, triggers whose function
is missing), so they can be detected and fixed.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from rowguard.core.logging import get_logger
from rowguard.core.triggers import TriggerEvent, TriggerTiming
from rowguard.domain.entities.index import Index
from rowguard.domain.entities.rule import OperationScope, Rule
from rowguard.domain.entities.stored_function import ExecutionSecurity, StoredFunction
from rowguard.domain.entities.trigger import Trigger
from rowguard.infrastructure.catalog.catalog import Catalog

logger = get_logger(__name__)

SNAPSHOT_VERSION = 1

_TIMESTAMP = TypeAdapter(datetime)


class RuleSnapshot(BaseModel):
    """A rule as stored in a snapshot."""

    name: str = Field(..., min_length=1)
    scope: OperationScope
    using: str | None = None
    check: str | None = None
    roles: list[str] = Field(default_factory=lambda: ["public"])


class CollectionSnapshot(BaseModel):
    """A collection with its rules and rows."""

    name: str = Field(..., min_length=1)
    columns: list[str] = Field(default_factory=list)
    access_control_enabled: bool = False
    access_sensitive: bool = True
    rules: list[RuleSnapshot] = Field(default_factory=list)
    timestamp_columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def parse_timestamps(self) -> "CollectionSnapshot":
        """JSON stores timestamps as ISO strings; restore them as datetimes."""
        for row in self.rows:
            for column in self.timestamp_columns:
                if isinstance(row.get(column), str):
                    row[column] = _TIMESTAMP.validate_python(row[column])
        return self


class AssignmentSnapshot(BaseModel):
    attribute: str = Field(..., min_length=1)
    expression: str = Field(..., min_length=1)


class FunctionSnapshot(BaseModel):
    """A trigger function. ``resolution_path`` null means unpinned."""

    name: str = Field(..., min_length=1)
    assignments: list[AssignmentSnapshot]
    security: ExecutionSecurity = ExecutionSecurity.INVOKER
    owner: str = "postgres"
    resolution_path: list[str] | None = None
    language: str = "plpgsql"


class TriggerSnapshot(BaseModel):
    name: str = Field(..., min_length=1)
    collection: str
    function: str
    timing: str = TriggerTiming.BEFORE
    event: str = TriggerEvent.UPDATE

    @field_validator("timing", "event")
    @classmethod
    def normalize_upper(cls, v: str) -> str:
        """Normalize timing and event to uppercase."""
        return v.upper()


class IndexSnapshot(BaseModel):
    name: str = Field(..., min_length=1)
    collection: str
    columns: list[str] = Field(..., min_length=1)
    method: str = "btree"


class CatalogSnapshot(BaseModel):
    """Serializable form of a catalog."""

    version: int = SNAPSHOT_VERSION
    catalog_id: str | None = Field(default=None, min_length=1, max_length=64)
    schemas: list[str] = Field(default_factory=list)
    collections: list[CollectionSnapshot] = Field(default_factory=list)
    functions: list[FunctionSnapshot] = Field(default_factory=list)
    triggers: list[TriggerSnapshot] = Field(default_factory=list)
    indexes: list[IndexSnapshot] = Field(default_factory=list)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version {v}, expected {SNAPSHOT_VERSION}")
        return v


def catalog_from_snapshot(snapshot: CatalogSnapshot, allow_unprotected_access: bool | None = None) -> Catalog:
    """Build a catalog reproducing a snapshot.

    A snapshot without a ``catalog_id`` gets a fresh one, which is written
    back the next time the catalog is dumped.
    """
    catalog = Catalog(allow_unprotected_access=allow_unprotected_access, catalog_id=snapshot.catalog_id)

    for schema in snapshot.schemas:
        catalog.create_schema(schema)

    for coll in snapshot.collections:
        collection = catalog.create_collection(coll.name, coll.columns, access_sensitive=coll.access_sensitive)
        for rule in coll.rules:
            catalog.create_rule(
                coll.name,
                Rule(
                    name=rule.name,
                    scope=rule.scope,
                    using=rule.using,
                    check=rule.check,
                    roles=tuple(rule.roles),
                ),
                allow_ambiguous=True,
            )
        collection.access_control_enabled = coll.access_control_enabled
        for row in coll.rows:
            stored = dict(row)
            if "id" not in stored:
                raise ValueError(f"Row in collection '{coll.name}' has no id")
            catalog.rows[coll.name][str(stored["id"])] = stored

    for func in snapshot.functions:
        catalog.create_function(
            StoredFunction(
                name=func.name,
                assignments=tuple((a.attribute, a.expression) for a in func.assignments),
                security=func.security,
                owner=func.owner,
                resolution_path=tuple(func.resolution_path) if func.resolution_path is not None else None,
                language=func.language,
            )
        )

    for idx in snapshot.indexes:
        catalog.create_index(Index(idx.name, idx.collection, tuple(idx.columns), idx.method))

    for trig in snapshot.triggers:
        catalog.create_trigger(
            Trigger(trig.name, trig.collection, trig.function, trig.timing, trig.event),
            require_function=False,
        )

    return catalog


def _timestamp_columns(rows) -> list[str]:
    return sorted({column for row in rows for column, value in row.items() if isinstance(value, datetime)})


def snapshot_from_catalog(catalog: Catalog) -> CatalogSnapshot:
    """Capture the current state of a catalog."""
    with catalog.schema_lock:
        return CatalogSnapshot(
            catalog_id=catalog.catalog_id,
            schemas=sorted(name for name in catalog.namespaces if name not in ("pg_catalog", "public")),
            collections=[
                CollectionSnapshot(
                    name=c.name,
                    columns=list(c.columns),
                    access_control_enabled=c.access_control_enabled,
                    access_sensitive=c.access_sensitive,
                    rules=[
                        RuleSnapshot(
                            name=r.name,
                            scope=r.scope,
                            using=r.using,
                            check=r.check,
                            roles=list(r.roles),
                        )
                        for r in c.rules.values()
                    ],
                    timestamp_columns=_timestamp_columns(catalog.rows[c.name].values()),
                    rows=[dict(row) for row in catalog.rows[c.name].values()],
                )
                for c in catalog.list_collections()
            ],
            functions=[
                FunctionSnapshot(
                    name=f.name,
                    assignments=[AssignmentSnapshot(attribute=a, expression=e) for a, e in f.assignments],
                    security=f.security,
                    owner=f.owner,
                    resolution_path=list(f.resolution_path) if f.resolution_path is not None else None,
                    language=f.language,
                )
                for f in catalog.list_functions()
            ],
            triggers=[
                TriggerSnapshot(
                    name=t.name,
                    collection=t.collection,
                    function=t.function_name,
                    timing=t.timing,
                    event=t.event,
                )
                for t in catalog.triggers.get_all()
            ],
            indexes=[
                IndexSnapshot(name=i.name, collection=i.collection, columns=list(i.columns), method=i.method)
                for i in sorted(catalog.indexes.values(), key=lambda i: i.name)
            ],
        )


def load_catalog(path: str | Path, allow_unprotected_access: bool | None = None) -> Catalog:
    """Load a catalog from a JSON snapshot file."""
    path = Path(path)
    snapshot = CatalogSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    catalog = catalog_from_snapshot(snapshot, allow_unprotected_access=allow_unprotected_access)
    logger.info(
        "Catalog loaded",
        path=str(path),
        collections=len(snapshot.collections),
        functions=len(snapshot.functions),
        triggers=len(snapshot.triggers),
    )
    return catalog


def dump_catalog(catalog: Catalog, path: str | Path) -> None:
    """Write a catalog to a JSON snapshot file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    snapshot = snapshot_from_catalog(catalog)
    path.write_text(
        json.dumps(snapshot.model_dump(mode="json"), indent=2, default=str) + "\n",
        encoding="utf-8",
    )
    logger.info("Catalog saved", path=str(path))
