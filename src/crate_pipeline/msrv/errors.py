"""Error types raised by the minimal-versions resolver."""

from __future__ import annotations

from collections.abc import Sequence


class MinimalVersionsError(RuntimeError):
    """Base error for minimal-versions resolution failures."""


class ManifestLockedError(MinimalVersionsError):
    """Raised when another run already owns the manifest (backup file present)."""

    def __init__(self, manifest_path: str, backup_path: str) -> None:
        self.manifest_path = manifest_path
        self.backup_path = backup_path
        super().__init__(
            f"{manifest_path} is locked: {backup_path} exists. Another run is in "
            "progress, or a previous run was killed; restore the manifest from the "
            "backup and delete it before retrying"
        )


class LockfileError(MinimalVersionsError):
    """Raised when ``Cargo.lock`` is missing or malformed."""


class FloorVersionNotFoundError(MinimalVersionsError):
    """Raised when one or more direct dependencies have no lockfile entry."""

    def __init__(self, dependencies: Sequence[str], lockfile: str) -> None:
        self.dependencies = tuple(dependencies)
        self.lockfile = lockfile
        names = ", ".join(self.dependencies)
        super().__init__(f"no version found in {lockfile} for: {names}")


__all__ = [
    "FloorVersionNotFoundError",
    "LockfileError",
    "ManifestLockedError",
    "MinimalVersionsError",
]
