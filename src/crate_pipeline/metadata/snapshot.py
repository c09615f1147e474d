"""Immutable dependency graph snapshots built from ``cargo metadata`` output."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from crate_pipeline.metadata.manifest import normalize_crate_name


class MetadataError(ValueError):
    """Raised when ``cargo metadata`` output lacks the expected structure."""


@dataclass(frozen=True, slots=True)
class ResolvedDependency:
    """A direct dependency of the root package as resolved by cargo."""

    name: str
    package: str
    package_id: str
    version: str
    features: Mapping[str, tuple[str, ...]]


@dataclass(frozen=True, slots=True)
class DependencySnapshot:
    root_id: str
    root_name: str
    dependencies: tuple[ResolvedDependency, ...]

    @property
    def direct_versions(self) -> Mapping[str, str]:
        return MappingProxyType({dep.name: dep.version for dep in self.dependencies})

    def find(self, name: str) -> ResolvedDependency | None:
        """Look up a direct dependency by manifest key, ``-`` and ``_`` treated alike."""

        wanted = normalize_crate_name(name)
        for dep in self.dependencies:
            if dep.name == wanted:
                return dep
        return None


def snapshot_from_metadata(
    payload: Mapping[str, Any],
    *,
    package_name: str | None = None,
) -> DependencySnapshot:
    """Build a snapshot of the root package's direct dependencies.

    ``resolve.root`` is null for virtual workspaces; ``package_name`` then selects
    the workspace member to treat as root.
    """

    packages = _require_list(payload.get("packages"), "packages")
    resolve = payload.get("resolve")
    if not isinstance(resolve, Mapping):
        raise MetadataError("cargo metadata: 'resolve' missing (was --no-deps used?)")
    nodes = _require_list(resolve.get("nodes"), "resolve.nodes")

    by_id: dict[str, Mapping[str, Any]] = {}
    for package in packages:
        if isinstance(package, Mapping) and isinstance(package.get("id"), str):
            by_id[package["id"]] = package

    root_id = _root_id(resolve, payload, by_id, package_name)
    root_node = next(
        (node for node in nodes if isinstance(node, Mapping) and node.get("id") == root_id),
        None,
    )
    if root_node is None:
        raise MetadataError(f"cargo metadata: no resolve node for root {root_id}")

    dependencies: list[ResolvedDependency] = []
    for dep in _require_list(root_node.get("deps", []), "resolve.nodes[].deps"):
        if not isinstance(dep, Mapping):
            continue
        pkg_id = dep.get("pkg")
        package = by_id.get(pkg_id) if isinstance(pkg_id, str) else None
        if package is None:
            raise MetadataError(f"cargo metadata: unknown package id {pkg_id!r}")
        dependencies.append(
            ResolvedDependency(
                name=str(dep.get("name", "")),
                package=str(package.get("name", "")),
                package_id=pkg_id,
                version=str(package.get("version", "")),
                features=_feature_table(package.get("features")),
            )
        )

    return DependencySnapshot(
        root_id=root_id,
        root_name=str(by_id[root_id].get("name", "")),
        dependencies=tuple(dependencies),
    )


def _root_id(
    resolve: Mapping[str, Any],
    payload: Mapping[str, Any],
    by_id: Mapping[str, Mapping[str, Any]],
    package_name: str | None,
) -> str:
    root = resolve.get("root")
    if isinstance(root, str) and root in by_id:
        if package_name is None or by_id[root].get("name") == package_name:
            return root

    if package_name is None:
        raise MetadataError("cargo metadata: no root package; pass the crate name")

    members = payload.get("workspace_members")
    member_ids = members if isinstance(members, Sequence) else list(by_id)
    for member_id in member_ids:
        package = by_id.get(member_id)
        if package is not None and package.get("name") == package_name:
            return member_id
    raise MetadataError(f"cargo metadata: package {package_name!r} is not a workspace member")


def _feature_table(value: object) -> Mapping[str, tuple[str, ...]]:
    if not isinstance(value, Mapping):
        return MappingProxyType({})
    return MappingProxyType(
        {
            str(name): tuple(str(item) for item in implied)
            for name, implied in value.items()
            if isinstance(implied, list)
        }
    )


def _require_list(value: object, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise MetadataError(f"cargo metadata: '{path}' must be a list")
    return value


__all__ = [
    "DependencySnapshot",
    "MetadataError",
    "ResolvedDependency",
    "snapshot_from_metadata",
]
