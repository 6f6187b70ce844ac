"""Actor session and transaction context."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

DEFAULT_SEARCH_PATH = ("public", "pg_catalog")


@dataclass(frozen=True)
class ActorContext:
    """The identity and session state of whoever issues an operation.

    ``search_path`` is session state the actor controls. Predicates see the
    actor as ``auth.id``, ``auth.role`` and ``auth.<claim>``.
    """

    actor_id: str
    role: str = "authenticated"
    search_path: tuple[str, ...] = DEFAULT_SEARCH_PATH
    claims: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "search_path", tuple(self.search_path))

    def as_auth(self) -> dict[str, Any]:
        """Values exposed to predicates under ``auth``."""
        return {**self.claims, "id": self.actor_id, "role": self.role}


@dataclass(frozen=True)
class TransactionContext:
    """A unit of work; ``now()`` returns ``started_at`` for its whole duration."""

    transaction_id: str = field(default_factory=lambda: f"tx_{uuid.uuid4().hex[:12]}")
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
