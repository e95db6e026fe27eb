"""CLI commands for backup runs: cbk run / cbk status."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from cloudbackup.backup.engine import BackupEngine
from cloudbackup.cli.context import config_option, home_option, load
from cloudbackup.core.errors import CloudBackupError
from cloudbackup.core.fileutil import format_size
from cloudbackup.core.ledger import StateLedger
from cloudbackup.core.models import PathOutcome
from cloudbackup.core.schedule import describe
from cloudbackup.core.tools import check_tools, required_tools

log = logging.getLogger(__name__)


@click.command("run")
@home_option
@config_option
@click.option("--strict", is_flag=True, help="Exit with code 2 if any path failed.")
def run_cmd(home: Path | None, config_file: Path | None, strict: bool) -> None:
    """Back up every path that is due and whose content changed."""
    settings = load(home, config_file)
    log.info("start backup run (%d paths)", len(settings.paths))

    try:
        check_tools(required_tools(settings.paths))
        engine = BackupEngine(settings, StateLedger(settings.state_file))
        report = engine.run()
    except CloudBackupError as e:
        log.error("backup run aborted: %s", e)
        raise click.ClickException(str(e)) from e

    for r in report.reports:
        line = f"  {r.outcome.value:<10} {r.spec.path}"
        if r.outcome == PathOutcome.FAILED:
            line += f"  ({r.reason})"
        elif r.outcome == PathOutcome.COMMITTED:
            line += f"  ({format_size(r.size)})"
        click.echo(line)

    click.echo(f"Total backup size: {format_size(report.total_size())}")
    for name, size in sorted(report.sizes_by_target().items()):
        click.echo(f"  {name}: {format_size(size)}")
    log.info("done")

    if strict and report.failed:
        sys.exit(2)


@click.command("status")
@home_option
@config_option
def status_cmd(home: Path | None, config_file: Path | None) -> None:
    """Show schedule, last backup and due state of every path."""
    settings = load(home, config_file)
    engine = BackupEngine(settings, StateLedger(settings.state_file))

    for spec in settings.paths:
        entry = engine.entry(spec)
        last = entry.timestamp.strftime("%Y-%m-%d %H:%M") if entry.timestamp else "never"
        due = "due" if engine.due(spec) else "-"
        schedule = describe(spec.schedule, settings.weekly_days, settings.monthly_days)
        click.echo(f"{spec.path}")
        click.echo(
            f"  {schedule}, last: {last}, size: {format_size(entry.size)}, "
            f"cloud: {spec.target_name}, {due}"
        )
