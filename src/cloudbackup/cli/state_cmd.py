"""CLI commands for operator actions: cbk reset / purge / restore / targets."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from cloudbackup.backup.engine import BackupEngine
from cloudbackup.cli.context import config_option, home_option, load
from cloudbackup.core.errors import CloudBackupError
from cloudbackup.core.ledger import StateLedger
from cloudbackup.core.tools import check_tools, required_tools
from cloudbackup.providers.registry import default_registry

log = logging.getLogger(__name__)


@click.command("reset")
@home_option
@config_option
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def reset_cmd(home: Path | None, config_file: Path | None, yes: bool) -> None:
    """Forget all backup state (every path becomes due)."""
    settings = load(home, config_file)
    if not yes:
        click.confirm(f"Delete state file {settings.state_file}?", abort=True)
    if StateLedger(settings.state_file).reset():
        click.echo("Backup state reset.")
    else:
        click.echo("No backup state to reset.")


@click.command("purge")
@home_option
@config_option
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def purge_cmd(home: Path | None, config_file: Path | None, yes: bool) -> None:
    """Delete the remote archives of all configured paths."""
    settings = load(home, config_file)
    if not yes:
        click.confirm(f"Delete remote archives of {len(settings.paths)} path(s)?", abort=True)

    log.info("clear backup archive")
    try:
        check_tools({spec.target.info.command for spec in settings.paths})
        engine = BackupEngine(settings, StateLedger(settings.state_file))
    except CloudBackupError as e:
        raise click.ClickException(str(e)) from e

    failures = engine.purge()
    removed = len(settings.paths) - failures
    click.echo(f"Removed {removed} remote archive(s), {failures} failed.")


@click.command("restore")
@click.argument("path")
@home_option
@config_option
@click.option(
    "--target",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory to unpack into (default: working directory).",
)
def restore_cmd(path: str, home: Path | None, config_file: Path | None, target: Path | None) -> None:
    """Restore PATH from its remote archive."""
    settings = load(home, config_file)
    spec = settings.find(path)
    if spec is None:
        raise click.ClickException(f"Path {path} is not configured")

    log.info("restore path %s", spec.path)
    try:
        check_tools(required_tools([spec]))
        engine = BackupEngine(settings, StateLedger(settings.state_file))
        dest = engine.restore(spec.path, target)
    except CloudBackupError as e:
        log.error("restore failed: %s", e)
        raise click.ClickException(f"Restore failed: {e}") from e
    click.echo(f"Restored {spec.path} into {dest}")


@click.command("targets")
def targets_cmd() -> None:
    """List available remote targets."""
    for entry in default_registry().list_all():
        click.echo(f"{entry.name:<8} {entry.description}")
