"""Policy decision result."""

from dataclasses import dataclass, field
from enum import Enum


class Decision(str, Enum):
    """Outcome of a policy evaluation."""

    ALLOW = "ALLOW"
    DENY = "DENY"


class DeniedStage(str, Enum):
    """Which predicate family rejected the operation."""

    NO_RULE = "no_rule"
    USING = "using"
    CHECK = "check"


@dataclass
class PolicyDecision:
    """Result of policy resolution.

    Attributes:
        decision: ALLOW or DENY.
        matched_rules: Names of the rules that granted access.
        denied_stage: Why access was denied, None when allowed.
        reason: Human-readable explanation for logs.
    """

    decision: Decision
    matched_rules: list[str] = field(default_factory=list)
    denied_stage: DeniedStage | None = None
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW

    @classmethod
    def allow(cls, matched_rules: list[str]) -> "PolicyDecision":
        return cls(Decision.ALLOW, matched_rules=matched_rules, reason=f"allowed by {', '.join(matched_rules)}")

    @classmethod
    def deny(cls, stage: DeniedStage, reason: str) -> "PolicyDecision":
        return cls(Decision.DENY, denied_stage=stage, reason=reason)
