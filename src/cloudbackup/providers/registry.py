"""Central registry of remote target backends."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cloudbackup.core.errors import ConfigurationError

log = logging.getLogger(__name__)


@dataclass
class TargetEntry:
    """Metadata about a registered remote target."""

    name: str  # "gdrive", "ydisk", "rclone", "local"
    cls: type  # The target class
    description: str = ""


class TargetRegistry:
    """Maps target names from the configuration to target classes."""

    def __init__(self) -> None:
        self._targets: dict[str, TargetEntry] = {}

    def register(self, name: str, cls: type, description: str = "") -> None:
        """Register a target class under a name."""
        self._targets[name] = TargetEntry(name=name, cls=cls, description=description)
        log.debug("Registered remote target: %s", name)

    def get_entry(self, name: str) -> TargetEntry:
        """Get a TargetEntry without instantiating."""
        entry = self._targets.get(name)
        if entry is None:
            available = ", ".join(self.names())
            raise ConfigurationError(f"Unknown remote target {name!r}. Available: {available}")
        return entry

    def create(self, name: str, config: dict | None = None) -> object:
        """Instantiate a target by name."""
        return self.get_entry(name).cls(config or {})

    def names(self) -> list[str]:
        return sorted(self._targets)

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def list_all(self) -> list[TargetEntry]:
        return [self._targets[n] for n in self.names()]


def default_registry() -> TargetRegistry:
    """Registry with all built-in targets."""
    from cloudbackup.providers.remote.gdrive import GDriveTarget
    from cloudbackup.providers.remote.local import LocalTarget
    from cloudbackup.providers.remote.rclone import RcloneTarget
    from cloudbackup.providers.remote.ydisk import YDiskTarget

    reg = TargetRegistry()
    reg.register("gdrive", GDriveTarget, "Google Drive via the 'drive' client")
    reg.register("ydisk", YDiskTarget, "Yandex Disk via 'ydcmd'")
    reg.register("rclone", RcloneTarget, "Any rclone remote")
    reg.register("local", LocalTarget, "Local or mounted directory")
    return reg
