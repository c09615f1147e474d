"""Package identity and dependency graph readers."""

from crate_pipeline.metadata.manifest import (
    CrateManifest,
    DependencySpec,
    ManifestError,
    PackageIdentity,
    normalize_crate_name,
    read_identity,
    read_manifest,
)
from crate_pipeline.metadata.snapshot import (
    DependencySnapshot,
    MetadataError,
    ResolvedDependency,
    snapshot_from_metadata,
)

__all__ = [
    "CrateManifest",
    "DependencySnapshot",
    "DependencySpec",
    "ManifestError",
    "MetadataError",
    "PackageIdentity",
    "ResolvedDependency",
    "normalize_crate_name",
    "read_identity",
    "read_manifest",
    "snapshot_from_metadata",
]
