"""Index usage analysis."""

from collections.abc import Iterable

from rowguard.core.logging import get_logger
from rowguard.domain.entities.index import IndexUsage

logger = get_logger(__name__)


def find_unused_indexes(usages: Iterable[IndexUsage], min_window_days: float) -> list[IndexUsage]:
    """Return the indexes with zero scans over a long enough window.

    A record without a known observation window, or with a window shorter
    than ``min_window_days``, says nothing about whether the index is used
    and is never reported.
    """
    unused = []
    for usage in usages:
        if usage.scans > 0:
            continue
        if usage.observed_days is None or usage.observed_days < min_window_days:
            logger.debug(
                "Index usage window too short",
                index=usage.index_name,
                observed_days=usage.observed_days,
                required_days=min_window_days,
            )
            continue
        unused.append(usage)
    return sorted(unused, key=lambda u: (u.collection, u.index_name))
