"""Core data models for cloud-backup."""

from __future__ import annotations

import os
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from cloudbackup.core.hashing import hash_text

if TYPE_CHECKING:
    from cloudbackup.providers.remote.base import RemoteTarget


# --- Enums ---


class ScheduleKind(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PathOutcome(str, Enum):
    SKIPPED = "skipped"  # not due
    UNCHANGED = "unchanged"  # archived, same fingerprint, nothing uploaded
    COMMITTED = "committed"
    FAILED = "failed"


# --- Helpers ---


def normalize_path(path: str | Path) -> str:
    """Expand ``~``, make absolute and resolve symlinks."""
    return os.path.realpath(os.path.expanduser(str(path)))


def identity_for(path: str | Path) -> str:
    """Stable identity fingerprint of a path: hash of its normalized form."""
    return hash_text(normalize_path(path))


# --- Models ---


@dataclass(frozen=True)
class PathSpec:
    """A configured backup unit."""

    path: str
    identity: str
    schedule: ScheduleKind = ScheduleKind.ONCE
    exclude: tuple[str, ...] = ()
    compression: bool = True
    encryption: bool = False
    target: RemoteTarget | None = field(default=None, compare=False)

    @classmethod
    def create(cls, path: str | Path, **kwargs) -> PathSpec:
        """Build a PathSpec with a normalized path and derived identity."""
        normalized = normalize_path(path)
        return cls(path=normalized, identity=hash_text(normalized), **kwargs)

    @property
    def archive_name(self) -> str:
        return f"{self.identity}.bin"

    @property
    def target_name(self) -> str:
        return self.target.info.display_name if self.target is not None else "?"


@dataclass
class LedgerEntry:
    """Persisted state of the last successful backup of one path."""

    content_hash: str = ""
    timestamp: datetime | None = None
    size: int = 0

    @property
    def never_run(self) -> bool:
        return self.timestamp is None


@dataclass
class ArchiveResult:
    """Output of one archive pipeline run."""

    target: Path
    size: int
    content_hash: str
    changed: bool


@dataclass
class PathReport:
    """What happened to one path during a run."""

    spec: PathSpec
    outcome: PathOutcome
    reason: str = ""
    size: int = 0


@dataclass
class RunReport:
    """Aggregate result of a backup run."""

    reports: list[PathReport] = field(default_factory=list)
    # Archive size per path identity after the run (ledger view)
    sizes: dict[str, int] = field(default_factory=dict)

    def by_outcome(self, outcome: PathOutcome) -> list[PathReport]:
        return [r for r in self.reports if r.outcome == outcome]

    @property
    def failed(self) -> list[PathReport]:
        return self.by_outcome(PathOutcome.FAILED)

    @property
    def committed(self) -> list[PathReport]:
        return self.by_outcome(PathOutcome.COMMITTED)

    def total_size(self) -> int:
        return sum(self.sizes.values())

    def sizes_by_target(self) -> dict[str, int]:
        """Sum of archived bytes grouped by target display name."""
        result: dict[str, int] = defaultdict(int)
        for report in self.reports:
            result[report.spec.target_name] += self.sizes.get(report.spec.identity, 0)
        return dict(result)
