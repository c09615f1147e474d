"""Minimal-versions resolution for a crate's direct dependencies."""

from crate_pipeline.msrv.errors import (
    FloorVersionNotFoundError,
    LockfileError,
    ManifestLockedError,
    MinimalVersionsError,
)
from crate_pipeline.msrv.guard import ManifestSnapshot, backup_path_for, guarded_manifest
from crate_pipeline.msrv.lockfile import (
    DEFAULT_FLOOR_POLICY,
    FloorPolicy,
    LockedPackage,
    candidate_versions,
    find_lockfile,
    read_lockfile,
    select_floor,
)
from crate_pipeline.msrv.resolver import (
    CargoBuilder,
    CargoResolver,
    MinimalVersionsReport,
    PinnedDependency,
    is_excluded,
    plan_pins,
    update_minimal_versions,
)

__all__ = [
    "DEFAULT_FLOOR_POLICY",
    "CargoBuilder",
    "CargoResolver",
    "FloorPolicy",
    "FloorVersionNotFoundError",
    "LockedPackage",
    "LockfileError",
    "ManifestLockedError",
    "ManifestSnapshot",
    "MinimalVersionsError",
    "MinimalVersionsReport",
    "PinnedDependency",
    "backup_path_for",
    "candidate_versions",
    "find_lockfile",
    "guarded_manifest",
    "is_excluded",
    "plan_pins",
    "read_lockfile",
    "select_floor",
    "update_minimal_versions",
]
