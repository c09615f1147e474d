"""
crate-pipeline — feature re-export checker.

File: src/crate_pipeline/reexport/checker.py

Purpose
- Verify that a pool crate re-exports every user-facing feature of its backend
  dependency, and nothing else.

Functional requirements
- The backend is looked up among the root package's direct dependencies with
  ``-`` normalized to ``_``, using the resolved package (several versions of the
  backend may coexist in the graph).
- Backend features exclude implicit ``a = ["dep:a"]`` entries, ``default`` and
  the document's ``features.exclude``.
- Crate re-exports are the manifest's feature keys minus ``default`` and the
  document's ``features.own``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from crate_pipeline.constants import DEFAULT_OVERRIDE_FILE
from crate_pipeline.overrides.document import (
    OverrideDocument,
    ResolvedOverrides,
    resolve_overrides,
)

if TYPE_CHECKING:
    from crate_pipeline.metadata.manifest import CrateManifest
    from crate_pipeline.metadata.snapshot import DependencySnapshot, ResolvedDependency

DEFAULT_FEATURE: Final[str] = "default"
_COLUMN_WIDTH: Final[int] = 61
_RULE: Final[str] = "-" * 30


class ReexportError(ValueError):
    """Base error for re-export checks that cannot run."""


class MissingBackendError(ReexportError):
    def __init__(self, override_file: str = DEFAULT_OVERRIDE_FILE) -> None:
        super().__init__(f'"backend" missing in {override_file}')


class BackendNotFoundError(ReexportError):
    def __init__(self, backend: str) -> None:
        self.backend = backend
        super().__init__(f'dependency "{backend}" not found')


@dataclass(frozen=True, slots=True)
class ReexportReport:
    backend: str
    crate: str
    backend_features: tuple[str, ...]
    crate_features: tuple[str, ...]

    @property
    def missing(self) -> tuple[str, ...]:
        """Backend features the crate does not re-export."""

        exported = set(self.crate_features)
        return tuple(name for name in self.backend_features if name not in exported)

    @property
    def unexpected(self) -> tuple[str, ...]:
        """Crate features with no backend counterpart."""

        available = set(self.backend_features)
        return tuple(name for name in self.crate_features if name not in available)

    @property
    def matches(self) -> bool:
        return self.backend_features == self.crate_features


def backend_features(
    features: Mapping[str, Sequence[str]],
    *,
    exclude: Iterable[str] = (),
) -> tuple[str, ...]:
    excluded = {DEFAULT_FEATURE, *exclude}
    return tuple(
        sorted(
            name
            for name, implied in features.items()
            if name not in excluded and not _is_implicit_dependency_feature(name, implied)
        )
    )


def crate_reexports(
    features: Mapping[str, Sequence[str]],
    *,
    own: Iterable[str] = (),
) -> tuple[str, ...]:
    excluded = {DEFAULT_FEATURE, *own}
    return tuple(sorted(name for name in features if name not in excluded))


def check_reexports(
    manifest: CrateManifest,
    overrides: OverrideDocument | ResolvedOverrides,
    snapshot: DependencySnapshot,
    *,
    override_file: str = DEFAULT_OVERRIDE_FILE,
) -> ReexportReport:
    resolved = (
        overrides if isinstance(overrides, ResolvedOverrides) else resolve_overrides(overrides)
    )
    if not resolved.backend:
        raise MissingBackendError(override_file)

    dependency: ResolvedDependency | None = snapshot.find(resolved.backend)
    if dependency is None:
        raise BackendNotFoundError(resolved.backend)

    return ReexportReport(
        backend=resolved.backend,
        crate=manifest.name,
        backend_features=backend_features(
            dependency.features, exclude=resolved.features_exclude
        ),
        crate_features=crate_reexports(manifest.features, own=resolved.features_own or ()),
    )


def render_side_by_side(report: ReexportReport) -> str:
    """Two-column listing; ``<`` marks backend-only rows and ``>`` crate-only rows."""

    lines = [
        f"{report.backend + ' features':<63} {report.crate} features",
        f"{_RULE:<64}{_RULE}",
    ]
    left, right = list(report.backend_features), list(report.crate_features)
    i = j = 0
    while i < len(left) or j < len(right):
        if j >= len(right) or (i < len(left) and left[i] < right[j]):
            lines.append(f"{left[i]:<{_COLUMN_WIDTH}} <")
            i += 1
        elif i >= len(left) or right[j] < left[i]:
            lines.append(f"{'':<{_COLUMN_WIDTH}} > {right[j]}")
            j += 1
        else:
            lines.append(f"{left[i]:<{_COLUMN_WIDTH}}   {right[j]}")
            i += 1
            j += 1
    return "\n".join(lines) + "\n"


def _is_implicit_dependency_feature(name: str, implied: Sequence[str]) -> bool:
    return len(implied) == 1 and implied[0] == f"dep:{name}"


__all__ = [
    "BackendNotFoundError",
    "MissingBackendError",
    "ReexportError",
    "ReexportReport",
    "backend_features",
    "check_reexports",
    "crate_reexports",
    "render_side_by_side",
]
