"""Archive pipeline: tar -> xz -> gpg as explicit stages, hashed on the fly.

Each stage is one external process. Stages are connected by OS pipes and the
output of the last stage is read here in chunks, written to the archive file
and fingerprinted in the same pass. No stage changes the process working
directory: tar gets ``-C <parent>`` so member names stay relative.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import subprocess
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from cloudbackup.core.errors import PathArchiveError
from cloudbackup.core.fileutil import ensure_dir, format_size, remove_file
from cloudbackup.core.hashing import CHUNK_SIZE, StreamHasher
from cloudbackup.core.models import ArchiveResult, PathSpec

log = logging.getLogger(__name__)

_GPG_BASE = ["gpg", "--batch", "--yes", "--quiet", "--pinentry-mode", "loopback"]


@dataclass
class Stage:
    """One external process in a pipeline."""

    name: str
    argv: list[str]
    pass_fds: tuple[int, ...] = ()


class StageError(Exception):
    """A pipeline stage exited non-zero or could not be started."""

    def __init__(self, stage: str, returncode: int | None, output: str = "") -> None:
        self.stage = stage
        self.returncode = returncode
        self.output = output
        if returncode is None:
            msg = f"{stage} could not be started: {output}"
        else:
            msg = f"{stage} exited with {returncode}"
        super().__init__(msg)


# --- Stage builders ---


def tar_create_stage(spec: PathSpec) -> Stage:
    source = Path(spec.path)
    parent, member = str(source.parent), source.name
    if not member:  # filesystem root
        parent, member = str(source), "."
    argv = ["tar"]
    argv += [f"--exclude={pattern}" for pattern in spec.exclude]
    # Fixed mtime and member order: same content, same bytes
    argv += ["--mtime=@0", "--sort=name", "-C", parent, "-cf", "-", member]
    return Stage("tar", argv)


def build_archive_stages(
    spec: PathSpec,
    compression_level: int,
    passphrase_fd: int | None = None,
) -> list[Stage]:
    """Stages that turn a source path into the uploadable byte stream."""
    stages = [tar_create_stage(spec)]
    if spec.compression:
        stages.append(Stage("xz", ["xz", "--compress", "--stdout", f"-{compression_level}"]))
    if spec.encryption:
        if passphrase_fd is None:
            raise PathArchiveError(f"Encryption enabled for {spec.path} but no passphrase")
        stages.append(Stage(
            "gpg",
            _GPG_BASE + ["--passphrase-fd", str(passphrase_fd), "--symmetric", "-z", "0", "-o", "-"],
            pass_fds=(passphrase_fd,),
        ))
    return stages


def build_restore_stages(
    spec: PathSpec,
    dest: Path,
    passphrase_fd: int | None = None,
) -> list[Stage]:
    """Reverse of build_archive_stages: decrypt, decompress, unpack into dest."""
    stages = []
    if spec.encryption:
        if passphrase_fd is None:
            raise PathArchiveError(f"Archive of {spec.path} is encrypted but no passphrase")
        stages.append(Stage(
            "gpg",
            _GPG_BASE + ["--passphrase-fd", str(passphrase_fd), "--decrypt", "-o", "-"],
            pass_fds=(passphrase_fd,),
        ))
    if spec.compression:
        stages.append(Stage("xz", ["xz", "--decompress", "--stdout"]))
    stages.append(Stage("tar", ["tar", "-x", "-f", "-", "-C", str(dest)]))
    return stages


@contextmanager
def passphrase_fd(passphrase: str | None) -> Iterator[int | None]:
    """Expose a passphrase to a child process through a pipe, not argv."""
    if passphrase is None:
        yield None
        return
    read_fd, write_fd = os.pipe()
    try:
        os.write(write_fd, passphrase.encode("utf-8") + b"\n")
    finally:
        os.close(write_fd)
    try:
        yield read_fd
    finally:
        os.close(read_fd)


# --- Runner ---


def _read_output(err: BinaryIO) -> str:
    err.seek(0)
    return err.read().decode("utf-8", errors="replace")


def run_stages(
    stages: list[Stage],
    stdin: BinaryIO | None = None,
    sink: Callable[[bytes], None] | None = None,
) -> None:
    """Run stages as one pipeline.

    ``stdin`` feeds the first stage. When ``sink`` is given it receives the
    final stage's stdout in chunks; otherwise that output is discarded.

    Raises:
        StageError: for the stage that failed. A stage killed by SIGPIPE
            because a later stage died is not reported as the cause.
    """
    procs: list[subprocess.Popen] = []
    errs: list[BinaryIO] = []
    upstream = stdin
    try:
        for i, stage in enumerate(stages):
            last = i == len(stages) - 1
            err = tempfile.TemporaryFile()
            errs.append(err)
            log.debug("stage %s: %s", stage.name, " ".join(stage.argv))
            try:
                proc = subprocess.Popen(
                    stage.argv,
                    stdin=upstream if upstream is not None else subprocess.DEVNULL,
                    stdout=subprocess.PIPE if (not last or sink is not None) else subprocess.DEVNULL,
                    stderr=err,
                    pass_fds=stage.pass_fds,
                )
            except OSError as e:
                raise StageError(stage.name, None, str(e)) from e
            # Only the child needs the read end of the previous pipe
            if procs and upstream is not None:
                upstream.close()
            procs.append(proc)
            upstream = proc.stdout

        if sink is not None and upstream is not None:
            for chunk in iter(lambda: upstream.read(CHUNK_SIZE), b""):
                sink(chunk)
            upstream.close()

        failures = []
        for stage, proc, err in zip(stages, procs, errs):
            code = proc.wait()
            if code != 0:
                failures.append(StageError(stage.name, code, _read_output(err)))
        if failures:
            primary = [f for f in failures if f.returncode != -signal.SIGPIPE]
            raise (primary or failures)[0]
    except BaseException:
        for proc in procs:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
        raise
    finally:
        for proc in procs:
            if proc.stdout is not None:
                with contextlib.suppress(OSError):
                    proc.stdout.close()
        for err in errs:
            err.close()


class ArchivePipeline:
    """Builds the archive of one path and decides whether it changed."""

    def __init__(self, work_dir: Path, compression_level: int = 2, passphrase: str = "") -> None:
        self.work_dir = work_dir
        self.compression_level = compression_level
        self._passphrase = passphrase

    def target_for(self, spec: PathSpec) -> Path:
        return self.work_dir / spec.archive_name

    def _secret(self, spec: PathSpec) -> str | None:
        return self._passphrase if spec.encryption and self._passphrase else None

    def build(self, spec: PathSpec, last_hash: str = "") -> ArchiveResult:
        """Archive spec.path into ``<work_dir>/<identity>.bin``.

        The fingerprint covers the final (compressed/encrypted) bytes. When it
        equals ``last_hash`` the file is deleted and ``changed`` is False.

        Raises:
            PathArchiveError: missing source or any failed stage. No partial
                archive is left behind.
        """
        target = self.target_for(spec)
        remove_file(target)

        if not os.path.exists(spec.path):
            raise PathArchiveError(f"Source path {spec.path} does not exist")

        log.info("archive %s -> %s", spec.path, target)
        hasher = StreamHasher()
        try:
            ensure_dir(self.work_dir)
            with passphrase_fd(self._secret(spec)) as fd, open(target, "wb") as out:
                stages = build_archive_stages(spec, self.compression_level, fd)

                def sink(chunk: bytes) -> None:
                    out.write(chunk)
                    hasher.update(chunk)

                run_stages(stages, sink=sink)
        except StageError as e:
            remove_file(target)
            raise PathArchiveError(f"Archiving {spec.path} failed: {e}", output=e.output) from e
        except OSError as e:
            remove_file(target)
            raise PathArchiveError(f"Archiving {spec.path} failed: {e}") from e
        except BaseException:
            remove_file(target)
            raise

        content_hash = hasher.hexdigest()
        log.info("  size: %s, data hash: %s", format_size(hasher.size), content_hash)

        if content_hash == last_hash:
            log.info("source not changed, skipping")
            remove_file(target)
            return ArchiveResult(target=target, size=hasher.size, content_hash=content_hash, changed=False)

        log.info("previous hash (%s) is different, mark to upload", last_hash or "none")
        return ArchiveResult(target=target, size=hasher.size, content_hash=content_hash, changed=True)

    def extract(self, spec: PathSpec, archive: Path, dest: Path) -> None:
        """Unpack a downloaded archive of spec into dest.

        Raises:
            PathArchiveError: any failed stage or unreadable archive.
        """
        log.info("extract %s -> %s", archive, dest)
        try:
            ensure_dir(dest)
            with passphrase_fd(self._secret(spec)) as fd, open(archive, "rb") as src:
                run_stages(build_restore_stages(spec, dest, fd), stdin=src)
        except StageError as e:
            raise PathArchiveError(f"Restoring {spec.path} failed: {e}", output=e.output) from e
        except OSError as e:
            raise PathArchiveError(f"Restoring {spec.path} failed: {e}") from e
