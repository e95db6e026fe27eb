"""RemoteTarget Protocol, types and the shared command adapter."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from cloudbackup.core.errors import RemoteTransferError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetInfo:
    """Metadata about a remote target."""

    display_name: str
    command: str  # external program every operation delegates to


@runtime_checkable
class RemoteTarget(Protocol):
    """Contract for remote storage backends.

    Implementations keep no state between calls. Every operation raises
    RemoteTransferError when the underlying command fails.
    """

    @property
    def name(self) -> str:
        """Registry key: 'gdrive', 'ydisk', 'rclone', 'local'."""
        ...

    @property
    def info(self) -> TargetInfo:
        """Target metadata."""
        ...

    def remove(self, remote_path: str) -> None:
        """Delete a remote archive."""
        ...

    def upload(self, local_file: Path, remote_prefix: str) -> None:
        """Upload a local archive under the remote prefix."""
        ...

    def download(self, remote_path: str, local_dir: Path) -> Path:
        """Fetch a remote archive into local_dir. Returns the local file."""
        ...


def fold_output(output: str) -> str:
    """Collapse multi-line tool output into a single log-friendly line."""
    return output.strip().replace("\n", "|")


def run_tool(argv: list[str], cwd: Path | None = None) -> str:
    """Run a remote storage command and return its combined output.

    Raises:
        RemoteTransferError: the command could not be started or exited non-zero.
    """
    log.debug("Running: %s (cwd=%s)", " ".join(argv), cwd)
    try:
        proc = subprocess.run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as e:
        raise RemoteTransferError(f"Cannot run {argv[0]}: {e}") from e

    if proc.returncode != 0:
        log.warning("command output: %s", fold_output(proc.stdout))
        raise RemoteTransferError(
            f"{argv[0]} {argv[1] if len(argv) > 1 else ''} exited with {proc.returncode}".strip(),
            output=proc.stdout,
        )
    return proc.stdout


def join_remote(prefix: str, name: str) -> str:
    """Join a remote prefix and object name with exactly one slash."""
    if not prefix:
        return name
    return prefix.rstrip("/") + "/" + name.lstrip("/")
