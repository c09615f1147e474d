"""
crate-pipeline — minimal-versions resolver.

File: src/crate_pipeline/msrv/resolver.py

Purpose
- Resolve direct dependencies to their declared minimum versions while leaving
  transitive dependencies at their newest compatible versions, so the crate can
  be checked against its declared ``rust-version``.

Functional requirements
- Phases run in order on the live manifest, inside :func:`guarded_manifest`:
  1. floor discovery: ``cargo +nightly update -Z minimal-versions``
  2. extraction: floor version per direct dependency from ``Cargo.lock``
  3. pinning: ``cargo add <package>@=<version>`` per dependency
  4. re-resolution: ``cargo +<rust-version> update``
- Excluded families (``deadpool`` and ``deadpool-*`` by default) are never pinned.
- Every dependency lacking a floor is reported at once, before any pin.
- The manifest is byte-identical to its original after the call returns or raises.
- An optional builder check (``cargo +<rust-version> check --lib``) runs after the
  manifest has been restored, against the re-resolved lockfile.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import structlog

from crate_pipeline.constants import (
    DEFAULT_NIGHTLY_TOOLCHAIN,
    MSRV_EXCLUDED_FAMILIES,
)
from crate_pipeline.metadata.manifest import CrateManifest, read_manifest
from crate_pipeline.msrv.errors import FloorVersionNotFoundError
from crate_pipeline.msrv.guard import guarded_manifest
from crate_pipeline.msrv.lockfile import (
    DEFAULT_FLOOR_POLICY,
    FloorPolicy,
    LockedPackage,
    candidate_versions,
    find_lockfile,
    read_lockfile,
    select_floor,
)


class CargoResolver(Protocol):
    """Dependency resolution capability."""

    def update(self, *, toolchain: str | None = None, minimal_versions: bool = False) -> None:
        ...

    def pin(self, dependency: str, version: str, *, rename: str | None = None) -> None:
        ...


class CargoBuilder(Protocol):
    """Build capability used for the optional post-resolution check."""

    def check(self, *, toolchain: str | None = None, feature_flags: str = "") -> None:
        ...


@dataclass(frozen=True, slots=True)
class PinnedDependency:
    key: str
    package: str
    version: str

    @property
    def rename(self) -> str | None:
        return self.key if self.key != self.package else None


@dataclass(frozen=True, slots=True)
class MinimalVersionsReport:
    manifest_path: Path
    lockfile_path: Path
    rust_version: str
    pinned: tuple[PinnedDependency, ...]
    skipped: tuple[str, ...]
    checked: bool = False


def is_excluded(package: str, families: Sequence[str]) -> bool:
    """``True`` if ``package`` is a family root or one of its ``<family>-*`` members."""

    return any(package == family or package.startswith(f"{family}-") for family in families)


def plan_pins(
    manifest: CrateManifest,
    packages: Sequence[LockedPackage],
    *,
    policy: FloorPolicy = DEFAULT_FLOOR_POLICY,
    excluded_families: Sequence[str] = MSRV_EXCLUDED_FAMILIES,
) -> tuple[list[PinnedDependency], list[str], list[str]]:
    """Return ``(pins, skipped, missing)`` for the manifest's direct dependencies."""

    pins: list[PinnedDependency] = []
    skipped: list[str] = []
    missing: list[str] = []
    for dependency in manifest.dependencies:
        if is_excluded(dependency.package, excluded_families):
            skipped.append(dependency.package)
            continue
        version = select_floor(candidate_versions(packages, dependency.package), policy)
        if version is None:
            missing.append(dependency.package)
            continue
        pins.append(
            PinnedDependency(key=dependency.key, package=dependency.package, version=version)
        )
    return pins, skipped, missing


def update_minimal_versions(
    rust_version: str,
    *,
    manifest_path: str | Path,
    cargo: CargoResolver,
    policy: FloorPolicy = DEFAULT_FLOOR_POLICY,
    excluded_families: Sequence[str] = MSRV_EXCLUDED_FAMILIES,
    nightly_toolchain: str = DEFAULT_NIGHTLY_TOOLCHAIN,
    builder: CargoBuilder | None = None,
    feature_flags: str = "",
    logger: Any | None = None,
) -> MinimalVersionsReport:
    """Pin direct dependencies to their floors and re-resolve for ``rust_version``."""

    log = logger if logger is not None else structlog.get_logger(__name__)

    with guarded_manifest(manifest_path, logger=log) as snapshot:
        manifest = read_manifest(snapshot.path)

        log.info("msrv_floor_discovery", crate=manifest.name, toolchain=nightly_toolchain)
        cargo.update(toolchain=nightly_toolchain, minimal_versions=True)

        lockfile_path = find_lockfile(manifest.crate_dir)
        pins, skipped, missing = plan_pins(
            manifest,
            read_lockfile(lockfile_path),
            policy=policy,
            excluded_families=excluded_families,
        )
        for package in skipped:
            log.info("msrv_skip_dependency", crate=manifest.name, dependency=package)
        if missing:
            raise FloorVersionNotFoundError(missing, str(lockfile_path))

        for pin in pins:
            log.info(
                "msrv_pin_dependency",
                crate=manifest.name,
                dependency=pin.package,
                version=pin.version,
                rename=pin.rename,
            )
            cargo.pin(pin.package, pin.version, rename=pin.rename)

        log.info("msrv_reresolve", crate=manifest.name, toolchain=rust_version)
        cargo.update(toolchain=rust_version)

    checked = False
    if builder is not None:
        log.info("msrv_check", crate=manifest.name, toolchain=rust_version, flags=feature_flags)
        builder.check(toolchain=rust_version, feature_flags=feature_flags)
        checked = True

    log.info("msrv_complete", crate=manifest.name, pinned=len(pins), skipped=len(skipped))
    return MinimalVersionsReport(
        manifest_path=snapshot.path,
        lockfile_path=lockfile_path,
        rust_version=rust_version,
        pinned=tuple(pins),
        skipped=tuple(skipped),
        checked=checked,
    )


__all__ = [
    "CargoBuilder",
    "CargoResolver",
    "MinimalVersionsReport",
    "PinnedDependency",
    "is_excluded",
    "plan_pins",
    "update_minimal_versions",
]
