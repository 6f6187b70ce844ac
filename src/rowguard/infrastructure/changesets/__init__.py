"""Change-sets: ordered, idempotent schema changes applied as a unit."""

from rowguard.infrastructure.changesets.applicator import ApplyResult, ChangeSetApplicator
from rowguard.infrastructure.changesets.builder import ChangeSetBuilder
from rowguard.infrastructure.changesets.ddl_renderer import render_change_set, render_operation, render_script
from rowguard.infrastructure.changesets.operations import (
    ChangeSet,
    CreateFunction,
    CreateIndex,
    CreateRule,
    CreateTrigger,
    DropFunctionCascade,
    DropIndexIfExists,
    DropRuleIfExists,
    EnableAccessControl,
    RebindFunction,
    SchemaOperation,
)

__all__ = [
    "ApplyResult",
    "ChangeSet",
    "ChangeSetApplicator",
    "ChangeSetBuilder",
    "CreateFunction",
    "CreateIndex",
    "CreateRule",
    "CreateTrigger",
    "DropFunctionCascade",
    "DropIndexIfExists",
    "DropRuleIfExists",
    "EnableAccessControl",
    "RebindFunction",
    "SchemaOperation",
    "render_change_set",
    "render_operation",
    "render_script",
]
