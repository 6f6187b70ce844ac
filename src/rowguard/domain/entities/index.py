"""Index entity and usage telemetry record."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Index:
    """A secondary index on a collection.

    Dropping an index is reversible: ``definition`` is enough to recreate it.
    """

    name: str
    collection: str
    columns: tuple[str, ...]
    method: str = "btree"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Index name is required")
        if not self.columns:
            raise ValueError(f"Index '{self.name}' must cover at least one column")
        object.__setattr__(self, "columns", tuple(self.columns))


@dataclass(frozen=True)
class IndexUsage:
    """Observed scan count for one index.

    Attributes:
        index_name: Index the statistics belong to.
        collection: Collection the index is on.
        scans: Number of index scans observed.
        observed_days: Length of the statistics window, None if unknown.
    """

    index_name: str
    collection: str
    scans: int
    observed_days: float | None = None
