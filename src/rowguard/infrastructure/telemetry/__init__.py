"""Database telemetry readers."""

from rowguard.infrastructure.telemetry.index_stats import fetch_index_usage

__all__ = ["fetch_index_usage"]
