"""Local target — copies archives into a directory (NAS mount, USB disk)."""

from __future__ import annotations

from pathlib import Path

from cloudbackup.core.errors import ConfigurationError, RemoteTransferError
from cloudbackup.providers.remote.base import TargetInfo, run_tool


class LocalTarget:
    """Archives under ``<path>/<prefix>/`` using ``cp`` and ``rm``.

    Remote paths are always taken relative to ``path``, even when the
    configured prefix starts with ``/``.
    """

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        path = str(config.get("path", "")).strip()
        if not path:
            raise ConfigurationError("local target needs a 'path'")
        self._root = Path(path).expanduser()

    @property
    def name(self) -> str:
        return "local"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="Local directory", command="cp")

    def _under_root(self, remote_path: str) -> Path:
        return self._root / remote_path.lstrip("/")

    def remove(self, remote_path: str) -> None:
        run_tool(["rm", "-f", str(self._under_root(remote_path))])

    def upload(self, local_file: Path, remote_prefix: str) -> None:
        dest_dir = self._under_root(remote_prefix)
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RemoteTransferError(f"Cannot create {dest_dir}: {e}") from e
        run_tool(["cp", str(local_file), str(dest_dir / local_file.name)])

    def download(self, remote_path: str, local_dir: Path) -> Path:
        dest = local_dir / Path(remote_path).name
        run_tool(["cp", str(self._under_root(remote_path)), str(dest)])
        return dest
