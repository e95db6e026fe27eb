"""Yandex Disk target via ``ydcmd``."""

from __future__ import annotations

from pathlib import Path

from cloudbackup.providers.remote.base import TargetInfo, run_tool


class YDiskTarget:
    """Yandex Disk through ``ydcmd`` (put/get/rm)."""

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._command = config.get("command", "ydcmd")

    @property
    def name(self) -> str:
        return "ydisk"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="Yandex Disk", command=self._command)

    def remove(self, remote_path: str) -> None:
        run_tool([self._command, "rm", remote_path])

    def upload(self, local_file: Path, remote_prefix: str) -> None:
        argv = [self._command, "put", str(local_file)]
        if remote_prefix:
            argv.append(remote_prefix)
        run_tool(argv)

    def download(self, remote_path: str, local_dir: Path) -> Path:
        dest = local_dir / Path(remote_path).name
        run_tool([self._command, "get", "--quiet", remote_path, str(dest)])
        return dest
