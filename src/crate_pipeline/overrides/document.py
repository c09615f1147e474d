"""
Per-crate override documents (``ci.config.yml``).

Every recognized field is read through :meth:`OverrideDocument.get`; a miss is
never an error, only a fallback to the documented default. The resolved view the
compiler consumes is :class:`ResolvedOverrides`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import yaml

from crate_pipeline.overrides.tree import (
    Node,
    from_python,
    navigate,
    split_path,
)

T = TypeVar("T")

_UNSET: Any = object()


class OverrideDocumentError(ValueError):
    """Raised when an override document exists but cannot be used."""


@dataclass(frozen=True, slots=True)
class OverrideDocument:
    """Sparse, read-only override tree for one crate."""

    root: Node = field(default_factory=lambda: from_python({}))
    source: str | None = None

    @classmethod
    def empty(cls) -> OverrideDocument:
        return cls()

    @classmethod
    def from_mapping(
        cls, payload: Mapping[str, object], *, source: str | None = None
    ) -> OverrideDocument:
        return cls(root=from_python(payload), source=source)

    @classmethod
    def from_yaml(cls, text: str, *, source: str | None = None) -> OverrideDocument:
        label = source or "<string>"
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise OverrideDocumentError(f"invalid YAML in {label}: {exc}") from exc
        if parsed is None:
            return cls(source=source)
        if not isinstance(parsed, Mapping):
            raise OverrideDocumentError(
                f"{label}: document root must be a mapping, got {type(parsed).__name__}"
            )
        return cls.from_mapping(parsed, source=source)

    @classmethod
    def load(cls, path: str | Path) -> OverrideDocument:
        """Load ``path``; an absent file yields an empty document."""

        target = Path(path)
        if not target.exists():
            return cls(source=target.as_posix())
        try:
            text = target.read_text(encoding="utf-8")
        except OSError as exc:
            raise OverrideDocumentError(f"unable to read {target}: {exc}") from exc
        return cls.from_yaml(text, source=target.as_posix())

    def get(self, path: str, default: T) -> object | T:
        """Return the value at dotted ``path`` or ``default`` if any segment is missing."""

        return navigate(self.root, split_path(path), default)

    def contains(self, path: str) -> bool:
        return self.get(path, _UNSET) is not _UNSET

    def get_str(self, path: str, default: str | None = None) -> str | None:
        """Return a string; explicit ``null`` and blank strings count as unspecified."""

        value = self.get(path, default)
        if value is None:
            return default
        if not isinstance(value, str):
            raise OverrideDocumentError(self._type_message(path, "a string", value))
        return value if value.strip() else default

    def get_str_list(self, path: str, default: list[str] | None = None) -> list[str] | None:
        """Return a list of strings; explicit ``null`` counts as unspecified."""

        value = self.get(path, default)
        if value is None:
            return default
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise OverrideDocumentError(self._type_message(path, "a list of strings", value))
        return list(value)

    def get_mapping(self, path: str) -> dict[str, Any] | None:
        value = self.get(path, None)
        if value is None:
            return None
        if not isinstance(value, dict):
            raise OverrideDocumentError(self._type_message(path, "a mapping", value))
        return value

    def to_dict(self) -> dict[str, Any]:
        value = navigate(self.root, (), {})
        return value if isinstance(value, dict) else {}

    def _type_message(self, path: str, expected: str, value: object) -> str:
        label = self.source or "override document"
        return f"{label}: {path} must be {expected}, got {type(value).__name__}"


@dataclass(frozen=True, slots=True)
class ResolvedOverrides:
    """Override document with every recognized default filled in."""

    backend: str | None
    features_own: tuple[str, ...] | None
    features_required: tuple[str, ...] | None
    features_exclude: tuple[str, ...]
    check_features: tuple[str, ...] | None
    test_features: tuple[str, ...] | None
    test_services: dict[str, Any] | None
    test_env: dict[str, Any] | None
    jobs: dict[str, Any]

    @property
    def combined_features(self) -> tuple[str, ...] | None:
        return combine_features(self.features_own, self.features_required)


def combine_features(
    own: tuple[str, ...] | None,
    required: tuple[str, ...] | None,
) -> tuple[str, ...] | None:
    """``own + required``; ``None`` only when both are unspecified."""

    if own is None and required is None:
        return None
    return (*(own or ()), *(required or ()))


def resolve_overrides(document: OverrideDocument) -> ResolvedOverrides:
    """Fill every recognized override path with its documented default."""

    own = _as_tuple(document.get_str_list("features.own"))
    required = _as_tuple(document.get_str_list("features.required"))
    combined = combine_features(own, required)

    check_features = _as_tuple(document.get_str_list("check.features"))
    test_features = _as_tuple(document.get_str_list("test.features"))

    jobs = document.get_mapping("jobs") or {}

    return ResolvedOverrides(
        backend=document.get_str("backend"),
        features_own=own,
        features_required=required,
        features_exclude=_as_tuple(document.get_str_list("features.exclude")) or (),
        check_features=check_features if check_features is not None else combined,
        test_features=test_features if test_features is not None else combined,
        test_services=document.get_mapping("test.services"),
        test_env=document.get_mapping("test.env"),
        jobs=jobs,
    )


def _as_tuple(values: list[str] | None) -> tuple[str, ...] | None:
    return tuple(values) if values is not None else None


__all__ = [
    "OverrideDocument",
    "OverrideDocumentError",
    "ResolvedOverrides",
    "combine_features",
    "resolve_overrides",
]
