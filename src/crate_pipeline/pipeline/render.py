"""
crate-pipeline — workflow rendering and repository-wide generation.

File: src/crate_pipeline/pipeline/render.py

Purpose
- Serialize compiled definitions to YAML and keep ``.github/workflows`` in sync
  with every crate under the crates directory.

Functional requirements
- Output is byte-identical for identical inputs (insertion order, no timestamps).
- Files are replaced atomically; unchanged files are left untouched.
- Check mode writes nothing and reports outdated or missing workflows.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, Literal

import structlog
import yaml

from crate_pipeline.constants import (
    CARGO_MANIFEST,
    DEFAULT_CRATES_DIR,
    DEFAULT_OVERRIDE_FILE,
    DEFAULT_WORKFLOWS_DIR,
)
from crate_pipeline.metadata.manifest import read_identity
from crate_pipeline.overrides.document import OverrideDocument
from crate_pipeline.pipeline.compiler import compile_pipeline
from crate_pipeline.pipeline.model import PipelineDefinition, PipelineSettings
from crate_pipeline.utils.fs import atomic_write, read_text_if_exists

if TYPE_CHECKING:
    from crate_pipeline.metadata.snapshot import DependencySnapshot

WORKFLOW_SUFFIX: Final[str] = ".yml"

GenerationStatus = Literal["written", "unchanged", "outdated", "missing"]


@dataclass(frozen=True, slots=True)
class GenerationResult:
    crate: str
    path: Path
    status: GenerationStatus


@dataclass(frozen=True, slots=True)
class GenerationReport:
    results: tuple[GenerationResult, ...]

    @property
    def stale(self) -> tuple[GenerationResult, ...]:
        return tuple(item for item in self.results if item.status in ("outdated", "missing"))

    @property
    def up_to_date(self) -> bool:
        return not self.stale


def render_workflow(definition: PipelineDefinition, *, source: str | None = None) -> str:
    """Render ``definition`` as workflow YAML, prefixed by a generated-file banner."""

    body = yaml.safe_dump(
        definition.to_dict(),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )
    banner = "# Generated by crate-pipeline. Do not edit by hand"
    if source:
        banner = f"{banner}; change {source} instead"
    return f"{banner}.\n{body}"


def workflow_path(workflows_dir: Path, directory: str) -> Path:
    return workflows_dir / f"{directory}{WORKFLOW_SUFFIX}"


def discover_crate_dirs(crates_dir: Path) -> list[Path]:
    """Sorted crate directories (direct children holding a ``Cargo.toml``)."""

    if not crates_dir.is_dir():
        return []
    return sorted(
        child
        for child in crates_dir.iterdir()
        if child.is_dir() and (child / CARGO_MANIFEST).is_file()
    )


def compile_crate(
    crate_dir: str | Path,
    config: Mapping[str, Any],
    *,
    repo_root: str | Path,
    snapshot: DependencySnapshot | None = None,
    logger: Any | None = None,
) -> PipelineDefinition:
    """Read one crate's identity and overrides and compile its pipeline."""

    root = Path(repo_root).resolve()
    crate_path = Path(crate_dir).resolve()
    paths = config.get("paths", {})
    identity = read_identity(crate_path)
    overrides = OverrideDocument.load(
        crate_path / paths.get("override_file", DEFAULT_OVERRIDE_FILE)
    )
    settings = PipelineSettings.from_config(
        config,
        crates_path=_relative_posix(_crates_dir(root, config), root),
    )
    return compile_pipeline(identity, overrides, snapshot, settings=settings, logger=logger)


def generate_workflows(
    repo_root: str | Path,
    config: Mapping[str, Any],
    *,
    check: bool = False,
    logger: Any | None = None,
) -> GenerationReport:
    """Compile every crate and write (or, with ``check``, compare) its workflow."""

    log = logger if logger is not None else structlog.get_logger(__name__)
    root = Path(repo_root).resolve()
    crates_dir = _crates_dir(root, config)
    workflows_dir = _workflows_dir(root, config)
    override_file = config.get("paths", {}).get("override_file", DEFAULT_OVERRIDE_FILE)

    results: list[GenerationResult] = []
    for crate_dir in discover_crate_dirs(crates_dir):
        definition = compile_crate(crate_dir, config, repo_root=root, logger=log)
        rendered = render_workflow(
            definition,
            source=f"{_relative_posix(crate_dir, root)}/{override_file}",
        )
        target = workflow_path(workflows_dir, crate_dir.name)
        existing = read_text_if_exists(target)

        status: GenerationStatus
        if existing == rendered:
            status = "unchanged"
        elif check:
            status = "missing" if existing is None else "outdated"
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(target, rendered)
            status = "written"

        log.info("workflow_generated", crate=definition.name, path=str(target), status=status)
        results.append(GenerationResult(crate=definition.name, path=target, status=status))

    if not results:
        log.warning("no_crates_found", crates_dir=str(crates_dir))
    return GenerationReport(results=tuple(results))


def _crates_dir(root: Path, config: Mapping[str, Any]) -> Path:
    raw = Path(config.get("paths", {}).get("crates_dir", DEFAULT_CRATES_DIR))
    return raw if raw.is_absolute() else root / raw


def _workflows_dir(root: Path, config: Mapping[str, Any]) -> Path:
    raw = Path(config.get("paths", {}).get("workflows_dir", DEFAULT_WORKFLOWS_DIR))
    return raw if raw.is_absolute() else root / raw


def _relative_posix(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root).as_posix()
    except ValueError:
        return path.name


__all__ = [
    "GenerationReport",
    "GenerationResult",
    "compile_crate",
    "discover_crate_dirs",
    "generate_workflows",
    "render_workflow",
    "workflow_path",
]
