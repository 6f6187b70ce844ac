"""PostgreSQL DDL rendering for change-sets.

Renders each operation as the statement(s) a PostgreSQL deployment would
run, so a change-set can be reviewed or shipped as a migration.
"""

from rowguard.core.rules.sql_compiler import compile_to_sql, quote_identifier
from rowguard.domain.entities.rule import OperationScope, Rule
from rowguard.domain.entities.stored_function import ExecutionSecurity, StoredFunction
from rowguard.domain.entities.trigger import Trigger
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


def render_rule(collection: str, rule: Rule) -> str:
    lines = [f"CREATE POLICY {quote_identifier(rule.name)}"]
    scope = "ALL" if rule.scope is OperationScope.ALL else rule.scope.value
    lines.append(f"  ON {quote_identifier(collection)} FOR {scope}")
    if tuple(rule.roles) != ("public",):
        lines.append(f"  TO {', '.join(quote_identifier(r) for r in rule.roles)}")
    if rule.using is not None:
        lines.append(f"  USING ({compile_to_sql(rule.using)})")
    if rule.check is not None:
        lines.append(f"  WITH CHECK ({compile_to_sql(rule.check)})")
    return "\n".join(lines) + ";"


def render_function(function: StoredFunction) -> str:
    body = "\n".join(
        f"  NEW.{quote_identifier(attribute)} = {compile_to_sql(expression)};"
        for attribute, expression in function.assignments
    )
    lines = [
        f"CREATE OR REPLACE FUNCTION {quote_identifier(function.name)}()",
        "RETURNS TRIGGER AS $$",
        "BEGIN",
        body,
        "  RETURN NEW;",
        "END;",
        f"$$ LANGUAGE {function.language}",
    ]
    if function.security is ExecutionSecurity.DEFINER:
        lines.append("SECURITY DEFINER")
    if function.resolution_path is not None:
        lines.append(f"SET search_path = {', '.join(function.resolution_path)}")
    return "\n".join(lines) + ";"


def render_trigger(trigger: Trigger) -> str:
    return (
        f"CREATE TRIGGER {quote_identifier(trigger.name)} {trigger.timing} {trigger.event} "
        f"ON {quote_identifier(trigger.collection)}\n"
        f"  FOR EACH ROW EXECUTE FUNCTION {quote_identifier(trigger.function_name)}();"
    )


def render_drop_function(name: str) -> str:
    return f"DROP FUNCTION IF EXISTS {quote_identifier(name)}() CASCADE;"


def render_operation(operation: SchemaOperation) -> list[str]:
    """Render one operation as PostgreSQL statements."""
    if isinstance(operation, DropIndexIfExists):
        return [f"DROP INDEX IF EXISTS {quote_identifier(operation.name)};"]

    if isinstance(operation, CreateIndex):
        index = operation.index
        columns = ", ".join(quote_identifier(c) for c in index.columns)
        using = "" if index.method == "btree" else f" USING {index.method}"
        return [
            f"CREATE INDEX IF NOT EXISTS {quote_identifier(index.name)} "
            f"ON {quote_identifier(index.collection)}{using} ({columns});"
        ]

    if isinstance(operation, DropRuleIfExists):
        return [
            f"DROP POLICY IF EXISTS {quote_identifier(operation.name)} "
            f"ON {quote_identifier(operation.collection)};"
        ]

    if isinstance(operation, EnableAccessControl):
        return [f"ALTER TABLE {quote_identifier(operation.collection)} ENABLE ROW LEVEL SECURITY;"]

    if isinstance(operation, CreateRule):
        return [render_rule(operation.collection, operation.rule)]

    if isinstance(operation, DropFunctionCascade):
        return [render_drop_function(operation.name)]

    if isinstance(operation, CreateFunction):
        return [render_function(operation.function)]

    if isinstance(operation, CreateTrigger):
        return [render_trigger(operation.trigger)]

    if isinstance(operation, RebindFunction):
        statements = [render_drop_function(operation.function.name), render_function(operation.function)]
        statements.extend(render_trigger(trigger) for trigger in operation.triggers)
        return statements

    raise TypeError(f"Cannot render operation {type(operation).__name__}")


def render_change_set(change_set: ChangeSet) -> list[str]:
    """Render a change-set as an ordered list of PostgreSQL statements."""
    statements: list[str] = []
    for operation in change_set.operations:
        statements.extend(render_operation(operation))
    return statements


def render_script(change_set: ChangeSet) -> str:
    """Render a change-set as one SQL script."""
    header = f"-- {change_set.id}\n-- {change_set.description}\n"
    return header + "\n\n".join(render_change_set(change_set)) + "\n"
