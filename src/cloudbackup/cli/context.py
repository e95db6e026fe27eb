"""Shared CLI plumbing: locate config, build Settings, configure logging."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from cloudbackup.core.config import Settings, config_path, load_config, load_settings, resolve_home
from cloudbackup.core.errors import CloudBackupError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

home_option = click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override CBK_HOME path.",
)
config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (default: <home>/config.yaml).",
)


def setup_logging(settings: Settings) -> None:
    """Log to the configured file and to stderr."""
    settings.log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(str(settings.log_file), encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )


def load(home: Path | None, config_file: Path | None) -> Settings:
    """Load and validate configuration, then start logging.

    Configuration problems become a ClickException (exit code 1).
    """
    home_path = home or resolve_home()
    path = config_file or config_path(home_path)
    if not path.exists():
        raise click.ClickException(f"Config file not found: {path}")
    try:
        settings = load_settings(load_config(path), home_path)
    except CloudBackupError as e:
        raise click.ClickException(str(e)) from e
    setup_logging(settings)
    logging.getLogger("cloudbackup").info("config %s loaded", path)
    return settings
