"""Command-line interface for RowGuard.

This module provides the CLI commands for inspecting, rendering and
applying change-sets, and for auditing a catalog snapshot.
"""

import asyncio
from pathlib import Path
from typing import NoReturn

import click

from rowguard.core.config import get_settings
from rowguard.core.logging import configure_logging, get_logger
from rowguard.domain.exceptions import (
    ConfigurationError,
    PartialChangeSetApplicationError,
    RowGuardError,
)

EXIT_CONFIGURATION_ERROR = 1
EXIT_PARTIAL_APPLICATION = 2
EXIT_RUNTIME_ERROR = 3


def _load_change_set(change_set_id: str):
    from rowguard.changesets import get_change_set

    try:
        return get_change_set(change_set_id)
    except KeyError as e:
        click.echo(f"Error: {e.args[0]}", err=True)
        raise SystemExit(EXIT_CONFIGURATION_ERROR) from e


def _load_catalog(path: str):
    from rowguard.infrastructure.catalog import load_catalog

    if not Path(path).exists():
        click.echo(f"Error: catalog snapshot not found: {path}", err=True)
        raise SystemExit(EXIT_CONFIGURATION_ERROR)
    return load_catalog(path)


@click.group()
@click.version_option(version="0.1.0", prog_name="RowGuard")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default=None,
    help="Set log level (overrides ROWGUARD_LOG_LEVEL)",
)
def cli(log_level: str | None) -> None:
    """RowGuard - row-level access rules and audit columns.

    Applies schema-hardening change-sets to a catalog and audits catalogs
    for ambiguous rules, unprotected collections and unpinned functions.
    """
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)


@cli.command("list")
def list_change_sets() -> None:
    """List the registered change-sets."""
    from rowguard.changesets import available_change_sets, get_change_set

    for change_set_id in available_change_sets():
        change_set = get_change_set(change_set_id)
        click.echo(f"{change_set.id}  ({len(change_set)} operations)")
        click.echo(f"    {change_set.description}")


@cli.command()
@click.argument("change_set_id")
def render(change_set_id: str) -> None:
    """Print the PostgreSQL DDL of a change-set."""
    from rowguard.infrastructure.changesets import render_script

    click.echo(render_script(_load_change_set(change_set_id)), nl=False)


@cli.command()
@click.argument("change_set_id")
@click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Catalog snapshot to apply to (default: ROWGUARD_CATALOG_PATH)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show the operations without applying them",
)
def apply(change_set_id: str, catalog_path: str | None, dry_run: bool) -> None:
    """Apply a change-set to a catalog snapshot and record it in the ledger."""
    from rowguard.infrastructure.catalog import dump_catalog
    from rowguard.infrastructure.changesets import ChangeSetApplicator
    from rowguard.infrastructure.persistence.database import get_db_manager, init_database

    settings = get_settings()
    logger = get_logger(__name__)
    change_set = _load_change_set(change_set_id)

    if dry_run:
        click.echo(f"Change-set {change_set.id} (checksum {change_set.checksum[:12]})")
        for step, operation in enumerate(change_set.operations, start=1):
            click.echo(f"  {step:2d}. {operation.describe()}")
        return

    path = catalog_path or settings.catalog_path
    catalog = _load_catalog(path)

    async def run():
        db = get_db_manager()
        try:
            await init_database(db)
            async with db.session() as session:
                return await ChangeSetApplicator(catalog, session).apply(change_set)
        finally:
            await db.disconnect()

    try:
        result = asyncio.run(run())
    except PartialChangeSetApplicationError as e:
        dump_catalog(catalog, path)
        logger.error("Change-set partially applied", change_set_id=change_set.id, error=str(e))
        click.echo(f"Error: {e}", err=True)
        click.echo(f"Cause: {e.__cause__}", err=True)
        raise SystemExit(EXIT_PARTIAL_APPLICATION) from e

    if result.skipped:
        click.echo(f"Change-set {change_set.id} already applied to catalog {catalog.catalog_id}.")
        return

    dump_catalog(catalog, path)
    click.echo(
        f"Applied {change_set.id}: {result.applied_steps} operations, "
        f"{len(result.changed_steps)} changed the catalog."
    )


@cli.command()
@click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Catalog snapshot to audit (default: ROWGUARD_CATALOG_PATH)",
)
def check(catalog_path: str | None) -> None:
    """Audit a catalog snapshot. Exits 1 when problems are found."""
    from rowguard.domain.services import PolicyAuditor

    settings = get_settings()
    catalog = _load_catalog(catalog_path or settings.catalog_path)
    report = PolicyAuditor(catalog, audit_attribute=settings.audit_attribute).audit()

    if report.is_clean:
        click.echo("Catalog is clean.")
        return

    for finding in report.findings():
        click.echo(finding)
    raise SystemExit(EXIT_CONFIGURATION_ERROR)


@cli.command("seed-legacy")
@click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Where to write the snapshot (default: ROWGUARD_CATALOG_PATH)",
)
@click.option("--force", is_flag=True, help="Overwrite an existing snapshot")
def seed_legacy(catalog_path: str | None, force: bool) -> None:
    """Write a snapshot of the schema as it was before security hardening."""
    from rowguard.changesets.security_hardening import build_legacy_catalog
    from rowguard.infrastructure.catalog import dump_catalog

    path = catalog_path or get_settings().catalog_path
    if Path(path).exists() and not force:
        click.echo(f"Error: {path} already exists (use --force to overwrite)", err=True)
        raise SystemExit(EXIT_CONFIGURATION_ERROR)

    dump_catalog(build_legacy_catalog(), path)
    click.echo(f"Legacy catalog written to {path}")


@cli.command("init-db")
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
def init_db(force: bool) -> None:
    """Create the change-set ledger table.

    In production, use migrations instead.
    """
    from rowguard.infrastructure.persistence.database import get_db_manager, init_database

    settings = get_settings()

    if settings.is_production and not force:
        click.echo(
            "ERROR: Running in production mode. Use migrations instead of init-db.",
            err=True,
        )
        raise SystemExit(EXIT_CONFIGURATION_ERROR)

    if not force:
        click.confirm(
            "This will create the ledger table. Continue?",
            abort=True,
            default=False,
        )

    async def initialize():
        db = get_db_manager()
        try:
            await init_database(db)
            click.echo("Database initialized successfully.")
        finally:
            await db.disconnect()

    asyncio.run(initialize())


@cli.command()
def info() -> None:
    """Display RowGuard configuration."""
    settings = get_settings()

    click.echo(f"""
RowGuard v{settings.app_version}
{'=' * 40}

Configuration:
  Environment:  {settings.environment}
  Catalog:      {settings.catalog_path}

Maintainer:
  Path:         {', '.join(settings.maintainer_resolution_path)}
  Owner:        {settings.maintainer_owner}
  Attribute:    {settings.audit_attribute}

Database:
  URL:          {settings.database_url}
  Echo:         {settings.db_echo}

Logging:
  Level:        {settings.log_level}
  Format:       {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI.

    Errors that escape a command exit with status 1 (configuration), 2
    (partially applied change-set) or 3 (any other runtime error).
    """
    try:
        cli(standalone_mode=True)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_CONFIGURATION_ERROR) from e
    except PartialChangeSetApplicationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_PARTIAL_APPLICATION) from e
    except RowGuardError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_RUNTIME_ERROR) from e


if __name__ == "__main__":
    main()
