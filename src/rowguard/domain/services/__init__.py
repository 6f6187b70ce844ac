"""Domain services for RowGuard."""

from rowguard.domain.services.audit_maintainer import (
    AuditColumnMaintainer,
    build_maintainer_function,
    maintainer_function_name,
    maintainer_trigger_name,
)
from rowguard.domain.services.function_executor import FunctionExecutor
from rowguard.domain.services.index_usage import find_unused_indexes
from rowguard.domain.services.policy_auditor import AuditReport, PolicyAuditor
from rowguard.domain.services.policy_resolver import PolicyResolver

__all__ = [
    "AuditColumnMaintainer",
    "AuditReport",
    "build_maintainer_function",
    "FunctionExecutor",
    "PolicyAuditor",
    "PolicyResolver",
    "find_unused_indexes",
    "maintainer_function_name",
    "maintainer_trigger_name",
]
