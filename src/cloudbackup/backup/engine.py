"""Backup engine: drives every configured path through its lifecycle.

Per path and run::

    schedule check -> archive -> change check -> replace remote -> commit

A failure in archiving or transfer only fails that path, which stays due for
the next run. A ledger write failure stops the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from cloudbackup.backup.pipeline import ArchivePipeline
from cloudbackup.core.config import Settings
from cloudbackup.core.errors import ConfigurationError, PathArchiveError, RemoteTransferError
from cloudbackup.core.fileutil import format_size, remove_file
from cloudbackup.core.ledger import StateLedger
from cloudbackup.core.models import LedgerEntry, PathOutcome, PathReport, PathSpec, RunReport
from cloudbackup.core.schedule import is_due
from cloudbackup.providers.remote.base import fold_output, join_remote

_default_log = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class BackupEngine:
    """Runs backups, purges and restores for the paths in Settings.

    Args:
        settings: Validated configuration.
        ledger: State ledger; entries are loaded once here.
        pipeline: Archive pipeline (defaults to one built from settings).
        clock: Returns the current time; injectable for tests.
        logger: Receives every decision with ``path``, ``phase`` and
            ``outcome`` fields in ``extra``.
    """

    def __init__(
        self,
        settings: Settings,
        ledger: StateLedger,
        pipeline: ArchivePipeline | None = None,
        clock: Callable[[], datetime] = _local_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.ledger = ledger
        self.pipeline = pipeline or ArchivePipeline(
            settings.working_dir, settings.compression_level, settings.password,
        )
        self.clock = clock
        self.log = logger or _default_log
        self.entries: dict[str, LedgerEntry] = ledger.load()

    # --- Logging ---

    def _event(
        self,
        spec: PathSpec,
        phase: str,
        outcome: str,
        message: str,
        *args: object,
        level: int = logging.INFO,
    ) -> None:
        self.log.log(
            level, message, *args,
            extra={"path": spec.path, "phase": phase, "outcome": outcome},
        )

    # --- Queries ---

    def entry(self, spec: PathSpec) -> LedgerEntry:
        return self.entries.get(spec.identity) or LedgerEntry()

    def due(self, spec: PathSpec, now: datetime | None = None) -> bool:
        return is_due(
            spec.schedule,
            self.entry(spec).timestamp,
            now or self.clock(),
            self.settings.weekly_days,
            self.settings.monthly_days,
        )

    def remote_path(self, spec: PathSpec) -> str:
        return join_remote(self.settings.cloud_dir, spec.archive_name)

    # --- Backup ---

    def run(self) -> RunReport:
        """Process every configured path in order, then log the totals.

        Raises:
            LedgerWriteError: state could not be persisted; the run stops.
        """
        report = RunReport()
        for spec in self.settings.paths:
            report.reports.append(self.process(spec))
        report.sizes = {spec.identity: self.entry(spec).size for spec in self.settings.paths}
        self.summarize(report)
        return report

    def process(self, spec: PathSpec) -> PathReport:
        """Run one path through schedule check, archive, upload and commit."""
        self._event(spec, "start", "running", "processing path %s", spec.path)
        now = self.clock()

        if not self.due(spec, now):
            self._event(spec, "schedule", PathOutcome.SKIPPED.value, "recently backed up, skipping %s", spec.path)
            return PathReport(spec, PathOutcome.SKIPPED, "not due")
        self._event(spec, "schedule", "due", "back up %s (%s)", spec.path, spec.schedule.value)

        entry = self.entry(spec)
        try:
            result = self.pipeline.build(spec, entry.content_hash)
        except PathArchiveError as e:
            if e.output:
                self._event(spec, "archive", "output", "command output: %s", fold_output(e.output), level=logging.DEBUG)
            self._event(spec, "archive", PathOutcome.FAILED.value, "create archive failed for %s: %s", spec.path, e, level=logging.ERROR)
            return PathReport(spec, PathOutcome.FAILED, str(e))

        if not result.changed:
            self._event(spec, "archive", PathOutcome.UNCHANGED.value, "source %s not changed, skipping upload", spec.path)
            return PathReport(spec, PathOutcome.UNCHANGED, "content unchanged", size=result.size)
        self._event(spec, "archive", "changed", "content of %s changed (%s)", spec.path, format_size(result.size))

        try:
            self._upload(spec, result.target)
        except RemoteTransferError as e:
            # Local archive stays in the working directory for inspection
            self._event(spec, "upload", PathOutcome.FAILED.value, "upload archive failed for %s: %s", spec.path, e, level=logging.ERROR)
            return PathReport(spec, PathOutcome.FAILED, str(e), size=result.size)

        remove_file(result.target)
        self.entries[spec.identity] = LedgerEntry(
            content_hash=result.content_hash,
            timestamp=now,
            size=result.size,
        )
        self.ledger.save(self.settings.paths, self.entries)
        self._event(spec, "commit", PathOutcome.COMMITTED.value, "backed up %s (%s)", spec.path, format_size(result.size))
        return PathReport(spec, PathOutcome.COMMITTED, size=result.size)

    def _remove_remote(self, spec: PathSpec) -> bool:
        """Delete the remote archive of spec. Failures are logged, not raised."""
        remote = self.remote_path(spec)
        self._event(spec, "remove", "running", "delete remote archive %s", remote)
        try:
            spec.target.remove(remote)
        except RemoteTransferError as e:
            self._event(spec, "remove", PathOutcome.FAILED.value, "remote delete failed: %s", e, level=logging.WARNING)
            return False
        return True

    def _upload(self, spec: PathSpec, archive: Path) -> None:
        # Replace is delete + upload; backends may not overwrite in place
        self._remove_remote(spec)
        self._event(
            spec, "upload", "running", "upload %s (encryption: %s, cloud: %s)",
            archive.name, spec.encryption, spec.target_name,
        )
        spec.target.upload(archive, self.settings.cloud_dir)

    def summarize(self, report: RunReport) -> None:
        """Log total archived bytes, overall and per remote target."""
        self.log.info(
            "Total backup size for now: %s", format_size(report.total_size()),
            extra={"phase": "summary", "outcome": "total", "size": report.total_size()},
        )
        for name, size in sorted(report.sizes_by_target().items()):
            self.log.info(
                "  %s size: %s", name, format_size(size),
                extra={"phase": "summary", "outcome": "target", "target": name, "size": size},
            )

    # --- Operator commands ---

    def purge(self) -> int:
        """Delete every configured path's remote archive. Returns failure count."""
        failures = 0
        for spec in self.settings.paths:
            if not self._remove_remote(spec):
                failures += 1
        return failures

    def restore(self, path: str | Path, dest: Path | None = None) -> Path:
        """Download and unpack the archive of a configured path.

        Returns the directory the path was unpacked into (default: the
        working directory).

        Raises:
            ConfigurationError: path is not configured.
            RemoteTransferError: download failed.
            PathArchiveError: decrypt/decompress/unpack failed.
        """
        spec = self.settings.find(path)
        if spec is None:
            raise ConfigurationError(f"Path {path} is not configured")
        dest = dest or self.settings.working_dir
        work_dir = self.settings.working_dir

        remove_file(work_dir / spec.archive_name)
        remote = self.remote_path(spec)
        self._event(spec, "download", "running", "download %s", remote)
        archive = spec.target.download(remote, work_dir)
        try:
            self.pipeline.extract(spec, archive, dest)
        finally:
            remove_file(archive)
        self._event(spec, "restore", "restored", "restored %s into %s", spec.path, dest)
        return dest
