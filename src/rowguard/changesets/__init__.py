"""Registered change-sets, in application order."""

from collections.abc import Callable

from rowguard.changesets import security_hardening
from rowguard.infrastructure.changesets import ChangeSet

CHANGE_SETS: dict[str, Callable[[], ChangeSet]] = {
    security_hardening.CHANGE_SET_ID: security_hardening.build_change_set,
}


def available_change_sets() -> list[str]:
    return sorted(CHANGE_SETS)


def get_change_set(change_set_id: str) -> ChangeSet:
    """Build a registered change-set.

    Raises:
        KeyError: If no change-set has this id.
    """
    try:
        builder = CHANGE_SETS[change_set_id]
    except KeyError:
        raise KeyError(f"Unknown change-set '{change_set_id}'") from None
    return builder()
