"""rclone target: any backend rclone knows (S3, B2, SFTP, ...)."""

from __future__ import annotations

from pathlib import Path

from cloudbackup.core.errors import ConfigurationError
from cloudbackup.providers.remote.base import TargetInfo, join_remote, run_tool


class RcloneTarget:
    """Remote addressed as ``<remote>/<prefix>/<archive>``.

    Config keys: ``remote`` (required, e.g. ``s3:bucket``), ``command``.
    """

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._remote = str(config.get("remote", "")).strip()
        if not self._remote:
            raise ConfigurationError("rclone target needs a 'remote' (e.g. 's3:bucket')")
        self._command = config.get("command", "rclone")

    @property
    def name(self) -> str:
        return "rclone"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name=f"rclone ({self._remote})", command=self._command)

    def _url(self, path: str) -> str:
        if self._remote.endswith(":"):
            return self._remote + path.lstrip("/")
        return join_remote(self._remote, path)

    def remove(self, remote_path: str) -> None:
        run_tool([self._command, "deletefile", self._url(remote_path)])

    def upload(self, local_file: Path, remote_prefix: str) -> None:
        run_tool([self._command, "copy", str(local_file), self._url(remote_prefix)])

    def download(self, remote_path: str, local_dir: Path) -> Path:
        run_tool([self._command, "copy", self._url(remote_path), str(local_dir)])
        return local_dir / Path(remote_path).name
