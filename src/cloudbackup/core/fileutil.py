"""File system utilities: atomic writes, permissions, size formatting."""

from __future__ import annotations

import contextlib
import os
import platform
import tempfile
from pathlib import Path

FILE_MODE = 0o600

_IS_WINDOWS = platform.system() == "Windows"


def ensure_dir(path: Path) -> Path:
    """Create directory if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_file_permissions(path: Path) -> None:
    """Set file permissions to owner-only read/write."""
    if not _IS_WINDOWS and path.exists():
        path.chmod(FILE_MODE)


def atomic_write(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write content to file atomically via temp file + rename.

    Ensures the file is never partially written on crash.
    """
    ensure_dir(path.parent)

    # Temp file in the same directory so the rename stays on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".tmp_",
        suffix=path.suffix,
    )
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise

    ensure_file_permissions(path)


def remove_file(path: Path) -> bool:
    """Delete a file if present. Returns True when something was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def format_size(value: int) -> str:
    """Human-readable byte count: ``512 B``, ``1.5 MB``."""
    if value <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    remaining = float(value)
    for unit in units:
        if remaining < 1024.0 or unit == units[-1]:
            return f"{remaining:.1f} {unit}" if unit != "B" else f"{int(remaining)} {unit}"
        remaining /= 1024.0
    return f"{remaining:.1f} PB"
