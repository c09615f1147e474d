"""Stable constants shared across the compiler and the resolver."""

from __future__ import annotations

from typing import Final

# Tool config schema version.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Repository layout.
DEFAULT_CRATES_DIR: Final[str] = "crates"
DEFAULT_WORKFLOWS_DIR: Final[str] = ".github/workflows"
DEFAULT_OVERRIDE_FILE: Final[str] = "ci.config.yml"
CARGO_MANIFEST: Final[str] = "Cargo.toml"
CARGO_LOCKFILE: Final[str] = "Cargo.lock"
MANIFEST_BACKUP_SUFFIX: Final[str] = ".bak"

# Branch and toolchain defaults.
DEFAULT_MAIN_BRANCH: Final[str] = "main"
DEFAULT_TOOLCHAIN: Final[str] = "stable"
DEFAULT_NIGHTLY_TOOLCHAIN: Final[str] = "nightly"

# Reference operating systems for the integration matrix.
REFERENCE_OPERATING_SYSTEMS: Final[tuple[str, ...]] = ("ubuntu-latest", "windows-latest")

# Crates that get the integration check job. Temporary special case until the
# check can be enabled for every crate; keep the list explicit.
INTEGRATION_CHECK_CRATES: Final[frozenset[str]] = frozenset(
    {
        "deadpool-diesel",
        "deadpool-postgres",
        "deadpool-redis",
    }
)

# Dependency families the minimal-versions resolver never pins.
MSRV_EXCLUDED_FAMILIES: Final[tuple[str, ...]] = ("deadpool",)

__all__ = [
    "CARGO_LOCKFILE",
    "CARGO_MANIFEST",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CRATES_DIR",
    "DEFAULT_MAIN_BRANCH",
    "DEFAULT_NIGHTLY_TOOLCHAIN",
    "DEFAULT_OVERRIDE_FILE",
    "DEFAULT_TOOLCHAIN",
    "DEFAULT_WORKFLOWS_DIR",
    "INTEGRATION_CHECK_CRATES",
    "MANIFEST_BACKUP_SUFFIX",
    "MSRV_EXCLUDED_FAMILIES",
    "REFERENCE_OPERATING_SYSTEMS",
]
