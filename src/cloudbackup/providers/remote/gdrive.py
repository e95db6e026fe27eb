"""Google Drive target via the ``drive`` command-line client."""

from __future__ import annotations

from pathlib import Path

from cloudbackup.providers.remote.base import TargetInfo, run_tool


class GDriveTarget:
    """Google Drive through ``drive`` (push/pull/delete).

    ``drive`` resolves remote names relative to the mounted drive context,
    so uploads and downloads run with ``cwd`` set to the local directory.
    The remote prefix is implied by that context and not passed on upload.
    """

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._command = config.get("command", "drive")

    @property
    def name(self) -> str:
        return "gdrive"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="Google Drive", command=self._command)

    def remove(self, remote_path: str) -> None:
        run_tool([self._command, "delete", "-quiet", remote_path])

    def upload(self, local_file: Path, remote_prefix: str) -> None:
        run_tool([self._command, "push", "-quiet", str(local_file)], cwd=local_file.parent)

    def download(self, remote_path: str, local_dir: Path) -> Path:
        run_tool([self._command, "pull", "-quiet", remote_path], cwd=local_dir)
        return local_dir / Path(remote_path).name
