"""Command-line interface router for crate-pipeline."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import structlog

from crate_pipeline.cargo import CargoCLI
from crate_pipeline.config import (
    FLOOR_POLICIES,
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from crate_pipeline.config.schema import LOG_FORMATS
from crate_pipeline.constants import CARGO_MANIFEST, DEFAULT_OVERRIDE_FILE
from crate_pipeline.metadata import read_manifest, snapshot_from_metadata
from crate_pipeline.msrv import update_minimal_versions
from crate_pipeline.observability import configure_logging
from crate_pipeline.overrides import OverrideDocument, resolve_overrides
from crate_pipeline.pipeline import (
    compile_crate,
    flags_for,
    generate_workflows,
    render_workflow,
)
from crate_pipeline.reexport import (
    MissingBackendError,
    check_reexports,
    render_side_by_side,
)
from crate_pipeline.ui.render import create_renderer

EXIT_SUCCESS: Final[int] = 0
EXIT_CHECK_FAILED: Final[int] = 1


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported subcommands."""

    parser = argparse.ArgumentParser(
        prog="crate-pipeline",
        description=(
            "crate-pipeline — CI workflow compiler and minimal-versions resolver "
            "for multi-crate Cargo repositories.\n\n"
            "Common workflows:\n"
            "  crate-pipeline generate                    Regenerate every crate workflow\n"
            "  crate-pipeline generate --check            Fail if a workflow is stale\n"
            "  crate-pipeline update-minimal-versions 1.75\n"
            "  crate-pipeline check-reexports\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=".",
        help="Repository root directory (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to tool TOML config (default: <repo-root>/crate-pipeline.toml if present).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log debug events (cargo invocations, compiled jobs).",
    )
    common.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Log renderer on stderr (default: from config).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate ------------------------------------------------------------
    generate_parser = subparsers.add_parser(
        "generate",
        parents=[common],
        help="Compile and write the workflow of every crate",
        description=(
            "Compile a workflow for every crate directory holding a Cargo.toml and\n"
            "write it to the workflows directory.\n\n"
            "Examples:\n"
            "  crate-pipeline generate\n"
            "  crate-pipeline generate --check\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    generate_parser.add_argument(
        "--check",
        action="store_true",
        help="Write nothing; exit 1 if any workflow is outdated or missing",
    )
    generate_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    generate_parser.set_defaults(handler=_cmd_generate)

    # compile -------------------------------------------------------------
    compile_parser = subparsers.add_parser(
        "compile",
        parents=[common],
        help="Print the workflow of one crate to stdout",
    )
    compile_parser.add_argument("crate_dir", help="Crate directory (relative to repo root)")
    compile_parser.add_argument(
        "--with-metadata",
        action="store_true",
        help="Query cargo metadata and verify the backend is a direct dependency",
    )
    compile_parser.set_defaults(handler=_cmd_compile)

    # update-minimal-versions ---------------------------------------------
    msrv_parser = subparsers.add_parser(
        "update-minimal-versions",
        parents=[common],
        help="Resolve direct dependencies to their minimum versions",
        description=(
            "Pin direct dependencies to their floors, re-resolve with the given\n"
            "toolchain and restore Cargo.toml. Run from the crate directory.\n\n"
            "Examples:\n"
            "  crate-pipeline update-minimal-versions 1.75\n"
            "  crate-pipeline update-minimal-versions 1.75 --check\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    msrv_parser.add_argument("rust_version", help="Toolchain used for re-resolution")
    msrv_parser.add_argument(
        "--manifest-path",
        default=None,
        help=f"Crate manifest (default: ./{CARGO_MANIFEST})",
    )
    msrv_parser.add_argument(
        "--floor-policy",
        choices=FLOOR_POLICIES,
        default=None,
        help="Which locked version to pin when several exist (default: from config)",
    )
    msrv_parser.add_argument(
        "--check",
        action="store_true",
        help="Run cargo check --lib with the resolved versions afterwards",
    )
    msrv_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    msrv_parser.set_defaults(handler=_cmd_update_minimal_versions)

    # check-reexports -----------------------------------------------------
    reexport_parser = subparsers.add_parser(
        "check-reexports",
        parents=[common],
        help="Verify the crate re-exports every backend feature",
    )
    reexport_parser.add_argument(
        "--crate-dir",
        default=".",
        help="Crate directory (default: current working directory)",
    )
    reexport_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    reexport_parser.set_defaults(handler=_cmd_check_reexports)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective tool configuration",
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_generate(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, repo_root)
    check = _flag(args, "check")

    report = generate_workflows(repo_root, config, check=check)
    stale = report.stale

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "generate",
                "check": check,
                "up_to_date": report.up_to_date,
                "results": [
                    {
                        "crate": item.crate,
                        "path": _display_path(item.path, repo_root),
                        "status": item.status,
                    }
                    for item in report.results
                ],
            }
        )
        return EXIT_CHECK_FAILED if check and stale else EXIT_SUCCESS

    renderer = create_renderer()
    if not report.results:
        renderer.text("No crates found.")
        return EXIT_SUCCESS
    renderer.table(
        ["Crate", "Status", "Workflow"],
        [
            [item.crate, item.status, _display_path(item.path, repo_root)]
            for item in report.results
        ],
    )
    if check and stale:
        renderer.section("Outdated workflows (run `crate-pipeline generate`):")
        renderer.items([_display_path(item.path, repo_root) for item in stale])
        return EXIT_CHECK_FAILED
    return EXIT_SUCCESS


def _cmd_compile(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, repo_root)
    crate_dir = _resolve_dir(_require_str(getattr(args, "crate_dir", None), "crate_dir"), repo_root)

    snapshot = None
    if _flag(args, "with_metadata"):
        manifest = read_manifest(crate_dir)
        payload = CargoCLI(crate_dir).metadata()
        snapshot = snapshot_from_metadata(payload, package_name=manifest.name)

    definition = compile_crate(crate_dir, config, repo_root=repo_root, snapshot=snapshot)
    sys.stdout.write(render_workflow(definition))
    return EXIT_SUCCESS


def _cmd_update_minimal_versions(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(
        args,
        repo_root,
        overrides={"msrv.floor_policy": getattr(args, "floor_policy", None)},
    )
    rust_version = _require_str(getattr(args, "rust_version", None), "rust_version")
    manifest_arg = _optional_str(getattr(args, "manifest_path", None)) or CARGO_MANIFEST
    manifest_path = Path(manifest_arg).expanduser().resolve()
    if not manifest_path.is_file():
        raise CLIError(f"manifest not found: {manifest_path}", exit_code=2)

    msrv = _section(config, "msrv")
    pipeline = _section(config, "pipeline")
    cargo = CargoCLI(manifest_path.parent)
    check = _flag(args, "check")

    report = update_minimal_versions(
        rust_version,
        manifest_path=manifest_path,
        cargo=cargo,
        policy=msrv["floor_policy"],
        excluded_families=tuple(msrv["excluded_families"]),
        nightly_toolchain=pipeline["nightly_toolchain"],
        builder=cargo if check else None,
        feature_flags=_crate_feature_flags(manifest_path.parent, config) if check else "",
    )

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "update-minimal-versions",
                "rust_version": report.rust_version,
                "manifest": report.manifest_path.as_posix(),
                "lockfile": report.lockfile_path.as_posix(),
                "pinned": [
                    {"dependency": pin.package, "key": pin.key, "version": pin.version}
                    for pin in report.pinned
                ],
                "skipped": list(report.skipped),
                "checked": report.checked,
            }
        )
        return EXIT_SUCCESS

    renderer = create_renderer()
    renderer.table(
        ["Dependency", "Version"],
        [[pin.package, pin.version] for pin in report.pinned],
        title="Pinned direct dependencies:",
    )
    if report.skipped:
        renderer.section("Skipped:")
        renderer.items(list(report.skipped))
    renderer.section(f"Lockfile re-resolved with {report.rust_version}: {report.lockfile_path}")
    if report.checked:
        renderer.ok(f"cargo +{report.rust_version} check --lib")
    return EXIT_SUCCESS


def _cmd_check_reexports(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, repo_root)
    crate_dir = Path(_require_str(getattr(args, "crate_dir", None), "crate_dir"))
    crate_dir = crate_dir.expanduser().resolve()
    override_file = _section(config, "paths").get("override_file", DEFAULT_OVERRIDE_FILE)

    manifest = read_manifest(crate_dir)
    overrides = resolve_overrides(OverrideDocument.load(crate_dir / override_file))
    if not overrides.backend:
        raise MissingBackendError(override_file)

    payload = CargoCLI(crate_dir).metadata()
    snapshot = snapshot_from_metadata(payload, package_name=manifest.name)
    report = check_reexports(manifest, overrides, snapshot, override_file=override_file)
    exit_code = EXIT_SUCCESS if report.matches else EXIT_CHECK_FAILED

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "check-reexports",
                "crate": report.crate,
                "backend": report.backend,
                "matches": report.matches,
                "missing": list(report.missing),
                "unexpected": list(report.unexpected),
            }
        )
        return exit_code

    sys.stdout.write(render_side_by_side(report))
    return exit_code


def _cmd_config(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, repo_root)

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": config})
        return EXIT_SUCCESS

    renderer = create_renderer()
    renderer.kv("Repository", repo_root.as_posix())
    renderer.text(dump_effective_config(config, indent=2))
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _display_path(path: Path, repo_root: Path) -> str:
    try:
        return path.relative_to(repo_root).as_posix()
    except ValueError:
        return path.as_posix()


# ---------------------------------------------------------------------------
# Helpers: config, paths
# ---------------------------------------------------------------------------


def _repo_root(args: argparse.Namespace) -> Path:
    raw = _require_str(getattr(args, "repo_root", None), "repo_root")
    candidate = Path(raw).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"repo root is not a directory: {candidate}", exit_code=2)
    return candidate


def _load_effective_config(
    args: argparse.Namespace,
    repo_root: Path,
    *,
    overrides: Mapping[str, object] | None = None,
) -> dict[str, Any]:
    cli_overrides: dict[str, object] = {
        "observability.log_format": getattr(args, "log_format", None),
        "observability.log_level": "DEBUG" if _flag(args, "verbose") else None,
    }
    cli_overrides.update(overrides or {})

    try:
        config = load_config(
            _optional_str(getattr(args, "config_path", None)),
            repo_root=repo_root,
            cli_overrides=cli_overrides,
        )
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    observability = _section(config, "observability")
    configure_logging(observability["log_level"], observability["log_format"])
    structlog.get_logger(__name__).debug("config_loaded", repo_root=repo_root.as_posix())
    return config


def _crate_feature_flags(crate_dir: Path, config: Mapping[str, Any]) -> str:
    override_file = _section(config, "paths").get("override_file", DEFAULT_OVERRIDE_FILE)
    resolved = resolve_overrides(OverrideDocument.load(crate_dir / override_file))
    return flags_for(resolved.combined_features)


def _resolve_dir(raw: str, repo_root: Path) -> Path:
    candidate = Path(raw).expanduser()
    resolved = candidate.resolve() if candidate.is_absolute() else (repo_root / candidate).resolve()
    if not resolved.is_dir():
        raise CLIError(f"not a directory: {resolved}", exit_code=2)
    return resolved


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name)
    return value if isinstance(value, Mapping) else {}


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _require_str(value: object, name: str) -> str:
    parsed = _optional_str(value)
    if parsed is None:
        raise CLIError(f"missing required argument: {name}", exit_code=2)
    return parsed


__all__ = ["CLIError", "build_parser", "run_cli"]
