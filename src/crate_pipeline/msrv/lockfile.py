"""
crate-pipeline — Cargo.lock reader and floor selection.

File: src/crate_pipeline/msrv/lockfile.py

Purpose
- Parse ``[[package]]`` entries from ``Cargo.lock`` and choose the floor version
  of a dependency after a minimal-versions update.

Functional requirements
- The lockfile may list several versions of one package (different majors pulled
  in by different dependents). Which one is the floor is a policy:
  ``last`` (last listed entry), ``first``, or ``lowest`` (version-aware).
"""

from __future__ import annotations

import tomllib
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal

from packaging.version import InvalidVersion, Version

from crate_pipeline.constants import CARGO_LOCKFILE
from crate_pipeline.msrv.errors import LockfileError

FloorPolicy = Literal["last", "first", "lowest"]
DEFAULT_FLOOR_POLICY: Final[FloorPolicy] = "last"


@dataclass(frozen=True, slots=True)
class LockedPackage:
    name: str
    version: str
    source: str | None = None


def find_lockfile(start: str | Path) -> Path:
    """Return the nearest ``Cargo.lock`` at or above ``start``."""

    origin = Path(start).resolve()
    if origin.is_file():
        origin = origin.parent
    for directory in (origin, *origin.parents):
        candidate = directory / CARGO_LOCKFILE
        if candidate.is_file():
            return candidate
    raise LockfileError(f"{CARGO_LOCKFILE} not found at or above {origin}")


def read_lockfile(path: str | Path) -> tuple[LockedPackage, ...]:
    lock_path = Path(path)
    try:
        with lock_path.open("rb") as handle:
            payload = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise LockfileError(f"invalid TOML in {lock_path}: {exc}") from exc
    except OSError as exc:
        raise LockfileError(f"unable to read {lock_path}: {exc}") from exc

    entries = payload.get("package", [])
    if not isinstance(entries, list):
        raise LockfileError(f"{lock_path}: 'package' must be an array of tables")

    packages: list[LockedPackage] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise LockfileError(f"{lock_path}: package[{index}] must be a table")
        name = entry.get("name")
        version = entry.get("version")
        if not isinstance(name, str) or not isinstance(version, str):
            raise LockfileError(f"{lock_path}: package[{index}] lacks name or version")
        source = entry.get("source")
        packages.append(
            LockedPackage(
                name=name,
                version=version,
                source=source if isinstance(source, str) else None,
            )
        )
    return tuple(packages)


def candidate_versions(packages: Sequence[LockedPackage], name: str) -> list[str]:
    """Versions locked for ``name`` in lockfile order."""

    return [package.version for package in packages if package.name == name]


def select_floor(
    versions: Sequence[str], policy: FloorPolicy = DEFAULT_FLOOR_POLICY
) -> str | None:
    """Pick the floor among ``versions`` according to ``policy``; ``None`` if empty."""

    if not versions:
        return None
    if policy == "last":
        return versions[-1]
    if policy == "first":
        return versions[0]
    if policy == "lowest":
        return min(versions, key=_version_key)
    raise ValueError(f"unknown floor policy {policy!r}")


def _version_key(raw: str) -> Version:
    try:
        return Version(raw)
    except InvalidVersion as exc:
        raise LockfileError(f"cannot order locked version {raw!r}: {exc}") from exc


__all__ = [
    "DEFAULT_FLOOR_POLICY",
    "FloorPolicy",
    "LockedPackage",
    "candidate_versions",
    "find_lockfile",
    "read_lockfile",
    "select_floor",
]
