"""
crate-pipeline — Cargo manifest reader.

File: src/crate_pipeline/metadata/manifest.py

Purpose
- Read package identity, declared ``rust-version``, direct dependencies (with
  ``package =`` renames) and the feature table from ``Cargo.toml``.

Functional requirements
- ``rust-version.workspace = true`` resolves through the nearest ancestor
  workspace manifest.
- Manifests are parsed once and exposed as immutable snapshots.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from crate_pipeline.constants import CARGO_MANIFEST


class ManifestError(ValueError):
    """Raised when a Cargo manifest is missing, unreadable, or incomplete."""


@dataclass(frozen=True, slots=True)
class DependencySpec:
    """One ``[dependencies]`` entry."""

    key: str
    package: str
    requirement: str | None = None

    @property
    def renamed(self) -> bool:
        return self.key != self.package


@dataclass(frozen=True, slots=True)
class CrateManifest:
    path: Path
    name: str
    rust_version: str | None
    dependencies: tuple[DependencySpec, ...]
    features: Mapping[str, tuple[str, ...]]

    @property
    def crate_dir(self) -> Path:
        return self.path.parent


@dataclass(frozen=True, slots=True)
class PackageIdentity:
    """What the pipeline compiler needs to know about a crate."""

    name: str
    rust_version: str
    directory: str


def normalize_crate_name(name: str) -> str:
    """Cargo treats ``-`` and ``_`` alike in dependency keys; metadata reports ``_``."""

    return name.replace("-", "_")


def read_manifest(path: str | Path) -> CrateManifest:
    """Parse ``Cargo.toml`` at ``path`` (a file or a crate directory)."""

    manifest_path = _manifest_path(path)
    payload = _load_toml(manifest_path)

    package = payload.get("package")
    if not isinstance(package, Mapping):
        raise ManifestError(f"{manifest_path}: [package] table missing")
    name = package.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"{manifest_path}: package.name missing")

    return CrateManifest(
        path=manifest_path,
        name=name.strip(),
        rust_version=_rust_version(package.get("rust-version"), manifest_path),
        dependencies=_dependencies(payload.get("dependencies"), manifest_path),
        features=_features(payload.get("features"), manifest_path),
    )


def read_identity(crate_dir: str | Path) -> PackageIdentity:
    """Identity of the crate in ``crate_dir``; ``rust-version`` is required."""

    manifest = read_manifest(crate_dir)
    if manifest.rust_version is None:
        raise ManifestError(f"{manifest.path}: package.rust-version missing")
    return PackageIdentity(
        name=manifest.name,
        rust_version=manifest.rust_version,
        directory=manifest.crate_dir.name,
    )


def _manifest_path(path: str | Path) -> Path:
    candidate = Path(path)
    if candidate.is_dir():
        candidate = candidate / CARGO_MANIFEST
    if not candidate.is_file():
        raise ManifestError(f"manifest not found: {candidate}")
    return candidate.resolve()


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ManifestError(f"unable to read {path}: {exc}") from exc


def _rust_version(value: object, manifest_path: Path) -> str | None:
    if value is None:
        return None
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, Mapping) and value.get("workspace") is True:
        return _workspace_rust_version(manifest_path)
    raise ManifestError(f"{manifest_path}: package.rust-version must be a version string")


def _workspace_rust_version(manifest_path: Path) -> str:
    for directory in manifest_path.parent.parents:
        candidate = directory / CARGO_MANIFEST
        if not candidate.is_file():
            continue
        workspace = _load_toml(candidate).get("workspace")
        if not isinstance(workspace, Mapping):
            continue
        package = workspace.get("package")
        version = package.get("rust-version") if isinstance(package, Mapping) else None
        if isinstance(version, str) and version.strip():
            return version.strip()
        raise ManifestError(
            f"{manifest_path}: rust-version inherited from {candidate}, "
            "but workspace.package.rust-version is not set"
        )
    raise ManifestError(f"{manifest_path}: rust-version.workspace = true outside a workspace")


def _dependencies(value: object, manifest_path: Path) -> tuple[DependencySpec, ...]:
    if value is None:
        return ()
    if not isinstance(value, Mapping):
        raise ManifestError(f"{manifest_path}: [dependencies] must be a table")

    specs: list[DependencySpec] = []
    for key, entry in value.items():
        if isinstance(entry, str):
            specs.append(DependencySpec(key=key, package=key, requirement=entry))
            continue
        if not isinstance(entry, Mapping):
            raise ManifestError(f"{manifest_path}: dependencies.{key} must be a string or table")
        package = entry.get("package", key)
        requirement = entry.get("version")
        specs.append(
            DependencySpec(
                key=key,
                package=str(package),
                requirement=requirement if isinstance(requirement, str) else None,
            )
        )
    return tuple(specs)


def _features(value: object, manifest_path: Path) -> Mapping[str, tuple[str, ...]]:
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise ManifestError(f"{manifest_path}: [features] must be a table")
    table: dict[str, tuple[str, ...]] = {}
    for feature, implied in value.items():
        if not isinstance(implied, list):
            raise ManifestError(f"{manifest_path}: features.{feature} must be a list")
        table[feature] = tuple(str(item) for item in implied)
    return MappingProxyType(table)


__all__ = [
    "CrateManifest",
    "DependencySpec",
    "ManifestError",
    "PackageIdentity",
    "normalize_crate_name",
    "read_identity",
    "read_manifest",
]
