"""Row trigger infrastructure.

Example usage:
    from rowguard.core.triggers import TriggerRegistry, TriggerTiming, TriggerEvent

    registry = TriggerRegistry()
    registry.register(trigger)
    new_row = registry.fire("items", TriggerTiming.BEFORE, TriggerEvent.UPDATE, context, dispatch)
"""

from rowguard.core.triggers.trigger_events import (
    TriggerEvent,
    TriggerTiming,
    is_before,
)
from rowguard.core.triggers.trigger_registry import TriggerRegistry

__all__ = [
    "TriggerRegistry",
    "TriggerEvent",
    "TriggerTiming",
    "is_before",
]
