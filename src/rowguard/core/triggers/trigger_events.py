"""Trigger timing and event definitions.

Row triggers fire BEFORE or AFTER one of the row events. BEFORE triggers
may replace the new row; AFTER triggers observe the persisted row.
"""


class TriggerTiming:
    """When a trigger fires relative to the row change."""

    BEFORE = "BEFORE"
    AFTER = "AFTER"

    ALL = (BEFORE, AFTER)


class TriggerEvent:
    """Row events triggers can be attached to."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    ALL = (INSERT, UPDATE, DELETE)


def is_before(timing: str) -> bool:
    """Check if a timing can modify the row."""
    return timing == TriggerTiming.BEFORE

