"""State ledger: durable record of the last successful backup of every path.

On-disk format, one line per configured path::

    path,identity,content_hash,timestamp,size

``path`` is informational only, lookups go through ``identity``. A path that
was never backed up is written with the zero timestamp ``ZERO_TIMESTAMP``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path

from cloudbackup.core.errors import LedgerWriteError
from cloudbackup.core.fileutil import atomic_write, remove_file
from cloudbackup.core.models import LedgerEntry, PathSpec

log = logging.getLogger(__name__)

ZERO_TIMESTAMP = "0001-01-01T00:00:00Z"

_FIELDS = 5
_FRACTION = re.compile(r"\.(\d+)")


def format_timestamp(ts: datetime | None) -> str:
    if ts is None:
        return ZERO_TIMESTAMP
    return ts.isoformat()


def parse_timestamp(text: str) -> datetime | None:
    """Parse a ledger timestamp. Zero/empty means never backed up.

    Accepts RFC 3339 with a ``Z`` suffix and sub-microsecond fractions.
    """
    text = text.strip()
    if not text or text == ZERO_TIMESTAMP:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat wants exactly 6 fractional digits on older interpreters
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    ts = datetime.fromisoformat(text)
    if ts.year == 1:
        return None
    return ts


class StateLedger:
    """Loads and rewrites the ledger file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> dict[str, LedgerEntry]:
        """Read all entries keyed by identity fingerprint.

        A missing or unreadable file is a first run, not an error.
        """
        if not self.path.exists():
            log.info("No state file at %s, starting fresh", self.path)
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            log.warning("Failed to read state file %s, starting fresh", self.path, exc_info=True)
            return {}

        entries: dict[str, LedgerEntry] = {}
        for lineno, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            # Path may itself contain commas; the last four fields never do
            parts = line.rsplit(",", _FIELDS - 1)
            if len(parts) < _FIELDS:
                log.warning("State file %s:%d: expected %d fields, skipping", self.path, lineno, _FIELDS)
                continue
            _path, identity, content_hash, ts_text, size_text = parts
            try:
                entry = LedgerEntry(
                    content_hash=content_hash.strip(),
                    timestamp=parse_timestamp(ts_text),
                    size=int(size_text.strip() or 0),
                )
            except ValueError as e:
                log.warning("State file %s:%d: %s, skipping", self.path, lineno, e)
                continue
            entries[identity.strip()] = entry

        log.debug("Loaded %d state entries from %s", len(entries), self.path)
        return entries

    def save(self, specs: Iterable[PathSpec], entries: Mapping[str, LedgerEntry]) -> None:
        """Rewrite the whole file with one line per configured path.

        Raises:
            LedgerWriteError: the file could not be written.
        """
        lines = []
        for spec in specs:
            entry = entries.get(spec.identity) or LedgerEntry()
            lines.append(
                f"{spec.path},{spec.identity},{entry.content_hash},"
                f"{format_timestamp(entry.timestamp)},{entry.size}\n"
            )
        try:
            atomic_write(self.path, "".join(lines))
        except OSError as e:
            raise LedgerWriteError(f"Cannot write state file {self.path}: {e}") from e
        log.debug("Saved %d state entries to %s", len(lines), self.path)

    def reset(self) -> bool:
        """Delete the ledger file. Returns True if a file was removed."""
        removed = remove_file(self.path)
        if removed:
            log.info("State file %s deleted", self.path)
        return removed
