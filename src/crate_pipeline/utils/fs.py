"""
crate-pipeline — filesystem helpers.

File: src/crate_pipeline/utils/fs.py

Purpose
- Atomic replacement of generated workflows and restored manifests.
- Exclusive creation of marker files (manifest backup doubles as a lock).

Functional requirements
- A reader never observes a half-written target: data goes to a temp file in the
  destination directory, is fsynced, then replaces the target in one step.
- Exclusive creation fails with ``FileExistsError`` when the path is taken.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "read_text_if_exists",
    "write_exclusive",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """Atomically write ``data`` to ``path`` (temp file, fsync, ``os.replace``)."""

    target = Path(path)
    parent = target.parent.resolve(strict=True)

    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=parent)
    temp_path = Path(temp_name)
    payload = data if isinstance(data, bytes) else data.encode(encoding)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
        _fsync_directory(parent)
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def write_exclusive(path: PathLike, data: bytes) -> None:
    """Create ``path`` with ``data``; raise ``FileExistsError`` if it already exists."""

    fd = os.open(Path(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
    except BaseException:
        with contextlib.suppress(OSError):
            Path(path).unlink()
        raise


def read_text_if_exists(path: PathLike, *, encoding: str = "utf-8") -> str | None:
    target = Path(path)
    if not target.is_file():
        return None
    return target.read_text(encoding=encoding)


def _fsync_directory(path: Path) -> None:
    # Not every platform supports fsync on directories.
    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY
    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
