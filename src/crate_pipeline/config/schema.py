"""
crate-pipeline — tool configuration schema and validation.

File: src/crate_pipeline/config/schema.py

Defaults for every section of ``crate-pipeline.toml`` and the validator that turns
a merged payload into the effective config.

- ``meta.schema_version`` must equal ``CONFIG_SCHEMA_VERSION``; a mismatch says
  whether to upgrade crate-pipeline or the file.
- Every issue is collected as ``<dotted.path>: <message>`` and raised together in
  one ``ConfigValidationError``; unknown keys are issues too.
- ``pipeline.integration_crates`` is sorted and deduplicated and must hold valid
  crate names; ``observability.log_level`` is upper-cased.
- ``merge_config`` deep-merges mappings and replaces lists wholesale.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from crate_pipeline.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_CRATES_DIR,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_NIGHTLY_TOOLCHAIN,
    DEFAULT_OVERRIDE_FILE,
    DEFAULT_TOOLCHAIN,
    DEFAULT_WORKFLOWS_DIR,
    INTEGRATION_CHECK_CRATES,
    MSRV_EXCLUDED_FAMILIES,
    REFERENCE_OPERATING_SYSTEMS,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
FLOOR_POLICIES: Final[tuple[str, ...]] = ("last", "first", "lowest")
LOG_FORMATS: Final[tuple[str, ...]] = ("console", "json")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_CRATE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "crates_dir"),
    ("paths", "workflows_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    crates_dir: str
    workflows_dir: str
    override_file: str


class PipelineConfig(TypedDict):
    main_branch: str
    toolchain: str
    nightly_toolchain: str
    operating_systems: list[str]
    integration_crates: list[str]
    tool_install: str
    tool_command: str


class MsrvConfig(TypedDict):
    excluded_families: list[str]
    floor_policy: Literal["last", "first", "lowest"]


class ObservabilityConfig(TypedDict):
    log_level: str
    log_format: Literal["console", "json"]


class ToolConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    pipeline: PipelineConfig
    msrv: MsrvConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[ToolConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "paths": {
        "crates_dir": DEFAULT_CRATES_DIR,
        "workflows_dir": DEFAULT_WORKFLOWS_DIR,
        "override_file": DEFAULT_OVERRIDE_FILE,
    },
    "pipeline": {
        "main_branch": DEFAULT_MAIN_BRANCH,
        "toolchain": DEFAULT_TOOLCHAIN,
        "nightly_toolchain": DEFAULT_NIGHTLY_TOOLCHAIN,
        "operating_systems": list(REFERENCE_OPERATING_SYSTEMS),
        "integration_crates": sorted(INTEGRATION_CHECK_CRATES),
        "tool_install": "pip install crate-pipeline",
        "tool_command": "crate-pipeline",
    },
    "msrv": {
        "excluded_families": list(MSRV_EXCLUDED_FAMILIES),
        "floor_policy": "last",
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "console",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ToolConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade crate-pipeline.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade crate-pipeline"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues or normalized is None:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any] | None:
    allowed = {"meta", "paths", "pipeline", "msrv", "observability"}
    _reject_unknown_keys(payload, allowed, "", issues)
    _require_keys(payload, allowed, "", issues)
    if issues.has_issues:
        return None

    return {
        "meta": _validate_meta(payload["meta"], "meta", issues),
        "paths": _validate_paths(payload["paths"], "paths", issues),
        "pipeline": _validate_pipeline(payload["pipeline"], "pipeline", issues),
        "msrv": _validate_msrv(payload["msrv"], "msrv", issues),
        "observability": _validate_observability(
            payload["observability"], "observability", issues
        ),
    }


def _section(
    value: object,
    path: str,
    allowed: set[str],
    issues: _IssueCollector,
) -> dict[str, object] | None:
    section = _as_object(value, path, issues)
    if section is None:
        return None
    _reject_unknown_keys(section, allowed, path, issues)
    _require_keys(section, allowed, path, issues)
    return section


def _validate_meta(value: object, path: str, issues: _IssueCollector) -> dict[str, Any]:
    section = _section(value, path, {"schema_version"}, issues)
    if section is None or "schema_version" not in section:
        return {}
    version = _as_int(section["schema_version"], _join(path, "schema_version"), issues)
    if version is not None and version != ConfigSchemaVersion:
        issues.add(_join(path, "schema_version"), migration_guidance(version))
    return {"schema_version": version}


def _validate_paths(value: object, path: str, issues: _IssueCollector) -> dict[str, Any]:
    section = _section(value, path, {"crates_dir", "workflows_dir", "override_file"}, issues)
    if section is None:
        return {}
    out: dict[str, Any] = {}
    for key in ("crates_dir", "workflows_dir", "override_file"):
        if key in section:
            out[key] = _as_path_text(section[key], _join(path, key), issues)
    return out


def _validate_pipeline(value: object, path: str, issues: _IssueCollector) -> dict[str, Any]:
    keys = {
        "main_branch",
        "toolchain",
        "nightly_toolchain",
        "operating_systems",
        "integration_crates",
        "tool_install",
        "tool_command",
    }
    section = _section(value, path, keys, issues)
    if section is None:
        return {}
    out: dict[str, Any] = {}
    for key in ("main_branch", "toolchain", "nightly_toolchain", "tool_install", "tool_command"):
        if key in section:
            out[key] = _as_str(section[key], _join(path, key), issues)
    if "operating_systems" in section:
        systems = _as_str_list(
            section["operating_systems"], _join(path, "operating_systems"), issues
        )
        if systems is not None and not systems:
            issues.add(_join(path, "operating_systems"), "must list at least one runner")
        out["operating_systems"] = systems
    if "integration_crates" in section:
        crates = _as_str_list(
            section["integration_crates"], _join(path, "integration_crates"), issues
        )
        for index, name in enumerate(crates or ()):
            if not _CRATE_NAME_PATTERN.fullmatch(name):
                issues.add(f"{path}.integration_crates[{index}]", f"invalid crate name {name!r}")
        out["integration_crates"] = sorted(set(crates)) if crates is not None else None
    return out


def _validate_msrv(value: object, path: str, issues: _IssueCollector) -> dict[str, Any]:
    section = _section(value, path, {"excluded_families", "floor_policy"}, issues)
    if section is None:
        return {}
    out: dict[str, Any] = {}
    if "excluded_families" in section:
        out["excluded_families"] = _as_str_list(
            section["excluded_families"], _join(path, "excluded_families"), issues
        )
    if "floor_policy" in section:
        out["floor_policy"] = _as_enum(
            section["floor_policy"],
            _join(path, "floor_policy"),
            issues,
            allowed_values=FLOOR_POLICIES,
        )
    return out


def _validate_observability(value: object, path: str, issues: _IssueCollector) -> dict[str, Any]:
    section = _section(value, path, {"log_level", "log_format"}, issues)
    if section is None:
        return {}
    out: dict[str, Any] = {}
    if "log_level" in section:
        raw_level = section["log_level"]
        level = raw_level.strip().upper() if isinstance(raw_level, str) else raw_level
        out["log_level"] = _as_enum(
            level, _join(path, "log_level"), issues, allowed_values=LOG_LEVELS
        )
    if "log_format" in section:
        out["log_format"] = _as_enum(
            section["log_format"], _join(path, "log_format"), issues, allowed_values=LOG_FORMATS
        )
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_int(value: object, path: str, issues: _IssueCollector) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    return value


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "FLOOR_POLICIES",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ToolConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
