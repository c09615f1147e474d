"""
crate-pipeline — unit tests for the Cargo manifest reader

File: tests/unit/metadata/test_manifest.py

Purpose
- Validate identity, dependency and feature extraction from ``Cargo.toml``.

What this test file should cover
- ``package =`` renames and plain version strings.
- ``rust-version.workspace = true`` inheritance.
- Actionable errors for missing or malformed manifests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from crate_pipeline.metadata.manifest import (
    ManifestError,
    normalize_crate_name,
    read_identity,
    read_manifest,
)

_MANIFEST = """
[package]
name = "deadpool-redis"
version = "0.18.0"
rust-version = "1.75"

[dependencies]
deadpool = { path = "../deadpool", version = "0.12.0", default-features = false }
redis = { version = "0.27", default-features = false, features = ["aio"] }
serde = { package = "serde", version = "1.0.103", optional = true }
tokio1 = { package = "tokio", version = "1.0" }
log = "0.4"

[features]
default = ["rt_tokio_1"]
rt_tokio_1 = ["deadpool/rt_tokio_1", "redis/tokio-comp"]
serde = ["deadpool/serde", "dep:serde"]
"""


def _write_crate(root: Path, directory: str, manifest: str) -> Path:
    crate_dir = root / directory
    crate_dir.mkdir(parents=True, exist_ok=True)
    (crate_dir / "Cargo.toml").write_text(manifest, encoding="utf-8")
    return crate_dir


def test_read_manifest_extracts_dependencies_and_features(tmp_path: Path) -> None:
    crate_dir = _write_crate(tmp_path, "redis", _MANIFEST)

    manifest = read_manifest(crate_dir)

    assert manifest.name == "deadpool-redis"
    assert manifest.rust_version == "1.75"
    assert manifest.crate_dir == crate_dir.resolve()
    assert [(dep.key, dep.package) for dep in manifest.dependencies] == [
        ("deadpool", "deadpool"),
        ("redis", "redis"),
        ("serde", "serde"),
        ("tokio1", "tokio"),
        ("log", "log"),
    ]
    renamed = [dep.key for dep in manifest.dependencies if dep.renamed]
    assert renamed == ["tokio1"]
    assert manifest.dependencies[-1].requirement == "0.4"
    assert manifest.features["serde"] == ("deadpool/serde", "dep:serde")
    assert list(manifest.features) == ["default", "rt_tokio_1", "serde"]


def test_read_identity_uses_directory_name(tmp_path: Path) -> None:
    crate_dir = _write_crate(tmp_path / "crates", "redis", _MANIFEST)

    identity = read_identity(crate_dir)

    assert identity.name == "deadpool-redis"
    assert identity.rust_version == "1.75"
    assert identity.directory == "redis"


def test_missing_rust_version_is_a_manifest_error(tmp_path: Path) -> None:
    crate_dir = _write_crate(tmp_path, "bare", '[package]\nname = "bare"\n')

    assert read_manifest(crate_dir).rust_version is None
    with pytest.raises(ManifestError, match="rust-version missing"):
        read_identity(crate_dir)


def test_workspace_rust_version_is_inherited(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(
        '[workspace]\nmembers = ["crates/*"]\n\n[workspace.package]\nrust-version = "1.70"\n',
        encoding="utf-8",
    )
    crate_dir = _write_crate(
        tmp_path / "crates",
        "core",
        '[package]\nname = "deadpool"\nrust-version.workspace = true\n',
    )

    assert read_identity(crate_dir).rust_version == "1.70"


def test_workspace_without_rust_version_is_reported(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text('[workspace]\nmembers = ["crates/*"]\n', encoding="utf-8")
    crate_dir = _write_crate(
        tmp_path / "crates",
        "core",
        '[package]\nname = "deadpool"\nrust-version.workspace = true\n',
    )

    with pytest.raises(ManifestError, match="workspace.package.rust-version is not set"):
        read_manifest(crate_dir)


def test_missing_manifest_and_invalid_toml(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="manifest not found"):
        read_manifest(tmp_path / "nowhere")

    crate_dir = _write_crate(tmp_path, "broken", "[package\nname = 1")
    with pytest.raises(ManifestError, match="invalid TOML"):
        read_manifest(crate_dir)


def test_package_table_is_required(tmp_path: Path) -> None:
    crate_dir = _write_crate(tmp_path, "virtual", '[workspace]\nmembers = []\n')

    with pytest.raises(ManifestError, match=r"\[package\] table missing"):
        read_manifest(crate_dir)


def test_normalize_crate_name() -> None:
    assert normalize_crate_name("tokio-postgres") == "tokio_postgres"
    assert normalize_crate_name("redis") == "redis"
