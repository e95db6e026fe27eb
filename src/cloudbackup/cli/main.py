"""CLI entry point for cloud-backup (cbk command)."""

import click

from cloudbackup import __version__
from cloudbackup.cli.run_cmd import run_cmd, status_cmd
from cloudbackup.cli.state_cmd import purge_cmd, reset_cmd, restore_cmd, targets_cmd


@click.group()
@click.version_option(version=__version__, prog_name="cloud-backup")
def cli() -> None:
    """cloud-backup — scheduled archive uploads to remote storage."""


cli.add_command(run_cmd)
cli.add_command(status_cmd)
cli.add_command(reset_cmd)
cli.add_command(purge_cmd)
cli.add_command(restore_cmd)
cli.add_command(targets_cmd)


if __name__ == "__main__":
    cli()
