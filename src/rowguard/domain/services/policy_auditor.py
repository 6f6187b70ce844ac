"""Catalog auditing.

Scans a catalog for the configuration problems the hardening change-set
fixes, so the result of a change-set can be verified and a drifted
catalog can be detected before it is used.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rowguard.core.logging import get_logger
from rowguard.core.rules.ast import FunctionCall, Variable, walk
from rowguard.domain.entities.rule import OperationScope

if TYPE_CHECKING:
    from rowguard.infrastructure.catalog import Catalog

logger = get_logger(__name__)


@dataclass
class AuditReport:
    """Findings of a catalog audit.

    Attributes:
        ambiguous: (collection, ALL rule names) where specific rules also exist.
        unprotected_sensitive: Access-sensitive collections with access control off.
        dangling_triggers: (collection, trigger, function) for triggers whose
            function does not exist.
        unpinned_functions: Functions that inherit the caller's search path.
        missing_maintainers: Collections declaring the audit attribute without
            a trigger that maintains it.
    """

    ambiguous: list[tuple[str, list[str]]] = field(default_factory=list)
    unprotected_sensitive: list[str] = field(default_factory=list)
    dangling_triggers: list[tuple[str, str, str]] = field(default_factory=list)
    unpinned_functions: list[str] = field(default_factory=list)
    missing_maintainers: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (
            self.ambiguous
            or self.unprotected_sensitive
            or self.dangling_triggers
            or self.unpinned_functions
            or self.missing_maintainers
        )

    def findings(self) -> list[str]:
        """Findings as human-readable lines."""
        lines = []
        for collection, rules in self.ambiguous:
            lines.append(f"{collection}: ALL-scoped rules next to specific rules: {', '.join(rules)}")
        for collection in self.unprotected_sensitive:
            lines.append(f"{collection}: access control disabled")
        for collection, trigger, function in self.dangling_triggers:
            lines.append(f"{collection}: trigger {trigger} references missing function {function}")
        for function in self.unpinned_functions:
            lines.append(f"function {function}: resolution path not pinned")
        for collection in self.missing_maintainers:
            lines.append(f"{collection}: audit attribute has no maintainer trigger")
        return lines


class PolicyAuditor:
    """Audits rules, triggers and functions of a catalog."""

    def __init__(self, catalog: "Catalog", audit_attribute: str = "updated_at") -> None:
        self.catalog = catalog
        self.audit_attribute = audit_attribute

    def audit(self) -> AuditReport:
        report = AuditReport()

        with self.catalog.schema_lock:
            for collection in self.catalog.list_collections():
                rules = list(collection.rules.values())
                all_rules = [r.name for r in rules if r.scope is OperationScope.ALL]
                if all_rules and any(r.scope.is_specific for r in rules):
                    report.ambiguous.append((collection.name, all_rules))

                if collection.access_sensitive and not collection.access_control_enabled:
                    report.unprotected_sensitive.append(collection.name)

                if self.audit_attribute in collection.columns and not self._is_maintained(collection.name):
                    report.missing_maintainers.append(collection.name)

            for trigger in self.catalog.triggers.get_all():
                if self.catalog.get_function(trigger.function_name) is None:
                    report.dangling_triggers.append((trigger.collection, trigger.name, trigger.function_name))

            report.unpinned_functions = sorted(
                f.name for f in self.catalog.list_functions() if not f.is_pinned
            )

        logger.info(
            "Catalog audited",
            clean=report.is_clean,
            ambiguous=len(report.ambiguous),
            unprotected=len(report.unprotected_sensitive),
            dangling_triggers=len(report.dangling_triggers),
            unpinned_functions=len(report.unpinned_functions),
            missing_maintainers=len(report.missing_maintainers),
        )
        return report

    def _is_maintained(self, collection: str) -> bool:
        for trigger in self.catalog.triggers.for_collection(collection, "BEFORE", "UPDATE"):
            function = self.catalog.get_function(trigger.function_name)
            if function and any(attr == self.audit_attribute for attr, _ in function.assignments):
                return True
        return False

    def references(self, identifier: str) -> list[str]:
        """Rule predicates and function bodies that mention ``identifier``.

        Matches column references (bare, ``new.``/``old.`` prefixed) and
        function calls. An empty result means dropping an object named by
        the identifier cannot change how any predicate behaves.
        """
        found = []
        with self.catalog.schema_lock:
            for collection in self.catalog.list_collections():
                for rule in collection.rules.values():
                    nodes = [n for n in (rule.using_ast, rule.check_ast) if n is not None]
                    if any(_mentions(node, identifier) for node in nodes):
                        found.append(f"rule {collection.name}.{rule.name}")
            for function in self.catalog.list_functions():
                if any(_mentions(node, identifier) for _, node in function.compiled):
                    found.append(f"function {function.name}")
        return found


def _mentions(tree, identifier: str) -> bool:
    for node in walk(tree):
        if isinstance(node, Variable):
            name = node.name
        elif isinstance(node, FunctionCall):
            name = node.name
        else:
            continue
        if name == identifier or name.rsplit(".", 1)[-1] == identifier:
            return True
    return False
