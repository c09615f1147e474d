"""
crate-pipeline — unit tests for the pipeline compiler

File: tests/unit/pipeline/test_compiler.py

Purpose
- Validate job synthesis, conditional jobs, override precedence and triggers.

What this test file should cover
- Fixed job order and the flag expression each job receives.
- ``check-integration`` only for allow-listed crates; re-export job only with a backend.
- Raw ``jobs.*`` overrides replace generated jobs wholesale.
- Determinism across repeated compilations.
"""

from __future__ import annotations

import pytest

from crate_pipeline.metadata.manifest import PackageIdentity
from crate_pipeline.metadata.snapshot import DependencySnapshot, ResolvedDependency
from crate_pipeline.overrides.document import OverrideDocument
from crate_pipeline.pipeline.compiler import PipelineConfigurationError, compile_pipeline
from crate_pipeline.pipeline.model import PipelineSettings
from crate_pipeline.pipeline.render import render_workflow

REDIS = PackageIdentity(name="deadpool-redis", rust_version="1.75", directory="redis")
SYNC = PackageIdentity(name="deadpool-sync", rust_version="1.75", directory="sync")


def _runs(job: dict[str, object]) -> list[str]:
    steps = job["steps"]
    assert isinstance(steps, list)
    return [step["run"] for step in steps if "run" in step]


def test_empty_document_compiles_default_jobs() -> None:
    definition = compile_pipeline(SYNC, OverrideDocument.empty())

    assert list(definition.job_names) == ["clippy", "rustfmt", "msrv", "test", "docs"]
    assert _runs(definition.jobs["clippy"]) == [
        "cargo clippy --no-deps --all-features -- -D warnings"
    ]
    assert _runs(definition.jobs["rustfmt"]) == ["cargo fmt --check"]
    assert _runs(definition.jobs["test"]) == ["cargo test --all-features"]
    assert _runs(definition.jobs["docs"]) == ["cargo doc --no-deps --all-features"]
    assert definition.jobs["docs"]["env"] == {"RUSTDOCFLAGS": "-Dwarnings"}


def test_end_to_end_backend_and_own_features() -> None:
    document = OverrideDocument.from_mapping({"backend": "redis", "features": {"own": ["x"]}})

    definition = compile_pipeline(REDIS, document)

    assert list(definition.job_names) == [
        "clippy",
        "rustfmt",
        "check-integration",
        "check-reexported-features",
        "msrv",
        "test",
        "docs",
    ]
    integration = definition.jobs["check-integration"]
    assert integration["strategy"]["matrix"] == {
        "os": ["ubuntu-latest", "windows-latest"],
        "feature": ["x"],
    }
    assert _runs(integration) == [
        "cargo check --no-default-features --features ${{ matrix.feature }}"
    ]
    assert _runs(definition.jobs["test"]) == ["cargo test --features x"]
    assert _runs(definition.jobs["docs"]) == ["cargo doc --no-deps --features x"]
    assert _runs(definition.jobs["check-reexported-features"]) == [
        "pip install crate-pipeline",
        "crate-pipeline check-reexports --repo-root ${{ github.workspace }}",
    ]


def test_integration_job_only_for_allow_listed_crates() -> None:
    document = OverrideDocument.from_mapping({"backend": "redis"})

    assert "check-integration" not in compile_pipeline(SYNC, document).jobs
    assert "check-integration" in compile_pipeline(REDIS, document).jobs

    custom = PipelineSettings(integration_crates=frozenset({"deadpool-sync"}))
    assert "check-integration" in compile_pipeline(SYNC, document, settings=custom).jobs


def test_integration_matrix_without_features_uses_flag_expression() -> None:
    unspecified = compile_pipeline(REDIS, OverrideDocument.empty()).jobs["check-integration"]
    assert unspecified["strategy"]["matrix"] == {"os": ["ubuntu-latest", "windows-latest"]}
    assert _runs(unspecified) == ["cargo check --all-features"]

    empty = compile_pipeline(
        REDIS, OverrideDocument.from_mapping({"check": {"features": []}})
    ).jobs["check-integration"]
    assert _runs(empty) == ["cargo check"]


def test_msrv_job_resolves_minimal_versions_then_checks() -> None:
    document = OverrideDocument.from_mapping(
        {"features": {"own": ["rt_tokio_1"], "required": ["tokio-comp"]}}
    )

    msrv = compile_pipeline(REDIS, document).jobs["msrv"]

    toolchains = [
        step["with"]["toolchain"]
        for step in msrv["steps"]
        if "toolchain" in step.get("with", {})
    ]
    assert toolchains == ["nightly", "1.75"]
    assert _runs(msrv) == [
        "pip install crate-pipeline",
        "crate-pipeline update-minimal-versions 1.75 --repo-root ${{ github.workspace }}",
        "cargo +1.75 check --lib --features rt_tokio_1,tokio-comp",
    ]


@pytest.mark.parametrize("backend", ["", "   "])
def test_blank_backend_omits_reexport_job(backend: str) -> None:
    document = OverrideDocument.from_mapping({"backend": backend, "features": {"own": ["x"]}})

    definition = compile_pipeline(REDIS, document)

    assert "check-reexported-features" not in definition.jobs


def test_test_job_carries_services_and_env() -> None:
    document = OverrideDocument.from_mapping(
        {
            "test": {
                "features": ["serde"],
                "services": {"redis": {"image": "redis:7", "ports": ["6379:6379"]}},
                "env": {"REDIS__URL": "redis://127.0.0.1/"},
            }
        }
    )

    test_job = compile_pipeline(REDIS, document).jobs["test"]

    assert test_job["services"] == {"redis": {"image": "redis:7", "ports": ["6379:6379"]}}
    assert test_job["env"] == {"REDIS__URL": "redis://127.0.0.1/"}
    assert _runs(test_job) == ["cargo test --features serde"]


def test_raw_job_override_replaces_generated_job_exactly() -> None:
    replacement = {"name": "Custom test", "runs-on": "ubuntu-22.04", "steps": [{"run": "make"}]}
    document = OverrideDocument.from_mapping(
        {"jobs": {"test": replacement, "bench": {"runs-on": "ubuntu-latest", "steps": []}}}
    )

    definition = compile_pipeline(SYNC, document)

    assert definition.jobs["test"] == replacement
    assert list(definition.job_names) == ["clippy", "rustfmt", "msrv", "test", "docs", "bench"]


def test_raw_job_override_must_be_a_mapping() -> None:
    document = OverrideDocument.from_mapping({"jobs": {"test": ["not", "a", "job"]}})

    with pytest.raises(PipelineConfigurationError, match="jobs.test must be a mapping"):
        compile_pipeline(SYNC, document)


def test_triggers_and_defaults_are_scoped_to_the_crate() -> None:
    definition = compile_pipeline(REDIS, OverrideDocument.empty())

    assert definition.triggers == {
        "push": {
            "branches": ["main"],
            "tags": ["deadpool-redis-v*"],
            "paths": ["crates/redis/**"],
        },
        "pull_request": {"branches": ["main"], "paths": ["crates/redis/**"]},
    }
    assert definition.defaults == {"run": {"working-directory": "./crates/redis"}}
    assert definition.env == {"RUST_BACKTRACE": 1}


def test_backend_must_be_a_direct_dependency_when_snapshot_given() -> None:
    snapshot = DependencySnapshot(
        root_id="root",
        root_name="deadpool-redis",
        dependencies=(
            ResolvedDependency(
                name="redis",
                package="redis",
                package_id="redis 0.27.2",
                version="0.27.2",
                features={},
            ),
        ),
    )

    compile_pipeline(REDIS, OverrideDocument.from_mapping({"backend": "redis"}), snapshot)
    with pytest.raises(PipelineConfigurationError, match="not a direct dependency"):
        compile_pipeline(REDIS, OverrideDocument.from_mapping({"backend": "lapin"}), snapshot)


def test_compilation_is_deterministic() -> None:
    document = OverrideDocument.from_yaml(
        """
backend: redis
features:
  own: [rt_tokio_1, rt_async-std_1]
test:
  services:
    redis: {image: "redis:7"}
"""
    )

    first = render_workflow(compile_pipeline(REDIS, document))
    second = render_workflow(compile_pipeline(REDIS, document))

    assert first == second


def test_compiled_definition_is_isolated_from_document() -> None:
    services = {"redis": {"image": "redis:7"}}
    document = OverrideDocument.from_mapping({"test": {"services": services}})

    definition = compile_pipeline(SYNC, document)
    payload = definition.to_dict()
    payload["jobs"]["test"]["services"]["redis"]["image"] = "changed"

    assert definition.jobs["test"]["services"] == {"redis": {"image": "redis:7"}}
