"""
crate-pipeline — manifest snapshot/restore guard.

File: src/crate_pipeline/msrv/guard.py

Purpose
- Hold exclusive ownership of a ``Cargo.toml`` while it is temporarily mutated,
  and put the original bytes back on every exit path.

Functional requirements
- ``Cargo.toml.bak`` is created exclusively before any mutation; it is both the
  backup and the ownership marker. An existing backup means the manifest is owned
  by another run (or a killed one) and nothing is touched.
- Restoration runs in ``finally``. While the guard is held on the main thread,
  SIGTERM and SIGHUP raise ``SystemExit`` so restoration also runs when a CI
  runner cancels the job. SIGKILL cannot be intercepted; the backup then remains
  and blocks the next run until cleaned up.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from crate_pipeline.constants import MANIFEST_BACKUP_SUFFIX
from crate_pipeline.msrv.errors import ManifestLockedError, MinimalVersionsError
from crate_pipeline.utils.fs import atomic_write, write_exclusive

_HANDLED_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig
)


@dataclass(frozen=True, slots=True)
class ManifestSnapshot:
    path: Path
    backup_path: Path
    original: bytes


def backup_path_for(manifest_path: str | Path) -> Path:
    path = Path(manifest_path)
    return path.with_name(f"{path.name}{MANIFEST_BACKUP_SUFFIX}")


@contextmanager
def guarded_manifest(
    manifest_path: str | Path,
    *,
    logger: Any | None = None,
) -> Iterator[ManifestSnapshot]:
    """Snapshot ``manifest_path`` and restore it byte-for-byte when the block exits."""

    log = logger if logger is not None else structlog.get_logger(__name__)
    path = Path(manifest_path).resolve()
    backup = backup_path_for(path)

    try:
        original = path.read_bytes()
    except OSError as exc:
        raise MinimalVersionsError(f"unable to read manifest {path}: {exc}") from exc

    try:
        write_exclusive(backup, original)
    except FileExistsError as exc:
        raise ManifestLockedError(str(path), str(backup)) from exc

    log.debug("manifest_guard_acquired", manifest=str(path), backup=str(backup))
    previous = _install_signal_handlers()
    try:
        yield ManifestSnapshot(path=path, backup_path=backup, original=original)
    finally:
        try:
            atomic_write(path, original)
            backup.unlink(missing_ok=True)
            log.debug("manifest_restored", manifest=str(path))
        finally:
            _restore_signal_handlers(previous)


def _raise_on_signal(signum: int, _frame: object) -> None:
    raise SystemExit(128 + signum)


def _install_signal_handlers() -> dict[int, Any]:
    # Python only allows signal handlers on the main thread.
    if threading.current_thread() is not threading.main_thread():
        return {}
    previous: dict[int, Any] = {}
    for sig in _HANDLED_SIGNALS:
        previous[sig] = signal.signal(sig, _raise_on_signal)
    return previous


def _restore_signal_handlers(previous: dict[int, Any]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


__all__ = ["ManifestSnapshot", "backup_path_for", "guarded_manifest"]
