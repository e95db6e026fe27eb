"""Error taxonomy for cloud-backup."""

from __future__ import annotations


class CloudBackupError(Exception):
    """Base error for all cloud-backup failures."""


class ConfigurationError(CloudBackupError):
    """Invalid or incomplete configuration. Fatal before any path is processed."""


class ToolMissingError(CloudBackupError):
    """A required external program is not installed. Fatal at startup."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(f"Required command(s) not found: {', '.join(self.missing)}")


class LedgerWriteError(CloudBackupError):
    """The state ledger could not be persisted. Halts the run."""


class PathArchiveError(CloudBackupError):
    """Building the archive for one path failed. The path stays due."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class RemoteTransferError(CloudBackupError):
    """A remote storage command failed. The path stays due."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output
