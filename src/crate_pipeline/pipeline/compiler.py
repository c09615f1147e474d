"""
Pipeline compiler.

Composes a crate's identity, its resolved override document and (optionally) its
dependency snapshot into one workflow definition:

- fixed jobs: clippy, rustfmt, msrv, test, docs
- conditional jobs: check-integration (allow-listed crates only) and
  check-reexported-features (crates with a ``backend``)
- raw ``jobs.*`` overrides replace same-named generated jobs wholesale

Every trigger is scoped to the crate's own directory so many crates can share one
generation pass without cross-triggering. The result only depends on the inputs;
compiling twice yields identical definitions.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

import structlog

from crate_pipeline.overrides.document import (
    OverrideDocument,
    ResolvedOverrides,
    resolve_overrides,
)
from crate_pipeline.pipeline.features import command, flags_for
from crate_pipeline.pipeline.model import JobSpec, PipelineDefinition, PipelineSettings

if TYPE_CHECKING:
    from crate_pipeline.metadata.manifest import PackageIdentity
    from crate_pipeline.metadata.snapshot import DependencySnapshot

_CHECKOUT_STEP = {"uses": "actions/checkout@v4"}
_SETUP_PYTHON_STEP = {"uses": "actions/setup-python@v5", "with": {"python-version": "3.12"}}
_REPO_ROOT_OPTION = "--repo-root ${{ github.workspace }}"


class PipelineConfigurationError(ValueError):
    """Raised when overrides and crate metadata cannot form a valid pipeline."""


def compile_pipeline(
    identity: PackageIdentity,
    overrides: OverrideDocument | ResolvedOverrides,
    snapshot: DependencySnapshot | None = None,
    *,
    settings: PipelineSettings | None = None,
    logger: Any | None = None,
) -> PipelineDefinition:
    """Compile the workflow definition for one crate."""

    log = logger if logger is not None else structlog.get_logger(__name__)
    resolved = (
        overrides if isinstance(overrides, ResolvedOverrides) else resolve_overrides(overrides)
    )
    cfg = settings if settings is not None else PipelineSettings()

    if snapshot is not None and resolved.backend is not None:
        if snapshot.find(resolved.backend) is None:
            raise PipelineConfigurationError(
                f"{identity.name}: backend {resolved.backend!r} is not a direct dependency"
            )

    jobs: dict[str, JobSpec] = {
        "clippy": _clippy_job(resolved, cfg),
        "rustfmt": _rustfmt_job(cfg),
    }
    if identity.name in cfg.integration_crates:
        jobs["check-integration"] = _integration_job(resolved, cfg)
    if resolved.backend is not None:
        jobs["check-reexported-features"] = _reexport_job(cfg)
    jobs["msrv"] = _msrv_job(identity, resolved, cfg)
    jobs["test"] = _test_job(resolved, cfg)
    jobs["docs"] = _docs_job(resolved, cfg)

    for name, job in resolved.jobs.items():
        if not isinstance(job, dict):
            raise PipelineConfigurationError(
                f"{identity.name}: jobs.{name} must be a mapping, got {type(job).__name__}"
            )
        jobs[name] = copy.deepcopy(job)

    crate_path = f"{cfg.crates_path}/{identity.directory}"
    paths = [f"{crate_path}/**"]
    definition = PipelineDefinition(
        name=identity.name,
        triggers={
            "push": {
                "branches": [cfg.main_branch],
                "tags": [f"{identity.name}-v*"],
                "paths": paths,
            },
            "pull_request": {
                "branches": [cfg.main_branch],
                "paths": list(paths),
            },
        },
        env={"RUST_BACKTRACE": 1},
        defaults={"run": {"working-directory": f"./{crate_path}"}},
        jobs=jobs,
    )
    log.debug(
        "pipeline_compiled",
        crate=identity.name,
        jobs=list(definition.job_names),
        overridden=sorted(resolved.jobs),
    )
    return definition


def _toolchain_step(toolchain: str, *components: str) -> dict[str, Any]:
    step: dict[str, Any] = {
        "uses": "dtolnay/rust-toolchain@master",
        "with": {"toolchain": toolchain},
    }
    if components:
        step["with"]["components"] = ", ".join(components)
    return step


def _job(name: str, runner: str, steps: list[dict[str, Any]], **extra: Any) -> JobSpec:
    job: JobSpec = {"name": name, "runs-on": runner}
    job.update(extra)
    job["steps"] = [copy.deepcopy(_CHECKOUT_STEP), *steps]
    return job


def _clippy_job(resolved: ResolvedOverrides, cfg: PipelineSettings) -> JobSpec:
    return _job(
        "Clippy",
        cfg.runner,
        [
            _toolchain_step(cfg.toolchain, "clippy"),
            {
                "run": command(
                    "cargo clippy --no-deps",
                    flags_for(resolved.combined_features),
                    "-- -D warnings",
                )
            },
        ],
    )


def _rustfmt_job(cfg: PipelineSettings) -> JobSpec:
    return _job(
        "Rustfmt",
        cfg.runner,
        [_toolchain_step(cfg.toolchain, "rustfmt"), {"run": "cargo fmt --check"}],
    )


def _integration_job(resolved: ResolvedOverrides, cfg: PipelineSettings) -> JobSpec:
    matrix: dict[str, Any] = {"os": list(cfg.operating_systems)}
    features = resolved.check_features
    if features:
        matrix["feature"] = list(features)
        name = "Check integration (${{ matrix.os }}, ${{ matrix.feature }})"
        run = "cargo check --no-default-features --features ${{ matrix.feature }}"
    else:
        name = "Check integration (${{ matrix.os }})"
        run = command("cargo check", flags_for(features))
    return _job(
        name,
        "${{ matrix.os }}",
        [_toolchain_step(cfg.toolchain), {"run": run}],
        strategy={"fail-fast": False, "matrix": matrix},
    )


def _reexport_job(cfg: PipelineSettings) -> JobSpec:
    return _job(
        "Check re-exported features",
        cfg.runner,
        [
            _toolchain_step(cfg.toolchain),
            copy.deepcopy(_SETUP_PYTHON_STEP),
            {"run": cfg.tool_install},
            {"run": f"{cfg.tool_command} check-reexports {_REPO_ROOT_OPTION}"},
        ],
    )


def _msrv_job(
    identity: PackageIdentity, resolved: ResolvedOverrides, cfg: PipelineSettings
) -> JobSpec:
    rust_version = identity.rust_version
    return _job(
        "MSRV",
        cfg.runner,
        [
            _toolchain_step(cfg.nightly_toolchain),
            _toolchain_step(rust_version),
            copy.deepcopy(_SETUP_PYTHON_STEP),
            {"run": cfg.tool_install},
            {
                "run": command(
                    f"{cfg.tool_command} update-minimal-versions", rust_version, _REPO_ROOT_OPTION
                )
            },
            {
                "run": command(
                    f"cargo +{rust_version} check --lib", flags_for(resolved.combined_features)
                )
            },
        ],
    )


def _test_job(resolved: ResolvedOverrides, cfg: PipelineSettings) -> JobSpec:
    extra: dict[str, Any] = {}
    if resolved.test_services is not None:
        extra["services"] = copy.deepcopy(resolved.test_services)
    if resolved.test_env is not None:
        extra["env"] = copy.deepcopy(resolved.test_env)
    return _job(
        "Test",
        cfg.runner,
        [
            _toolchain_step(cfg.toolchain),
            {"run": command("cargo test", flags_for(resolved.test_features))},
        ],
        **extra,
    )


def _docs_job(resolved: ResolvedOverrides, cfg: PipelineSettings) -> JobSpec:
    return _job(
        "Docs",
        cfg.runner,
        [
            _toolchain_step(cfg.toolchain),
            {"run": command("cargo doc --no-deps", flags_for(resolved.combined_features))},
        ],
        env={"RUSTDOCFLAGS": "-Dwarnings"},
    )


__all__ = ["PipelineConfigurationError", "compile_pipeline"]
