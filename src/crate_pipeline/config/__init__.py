"""
crate-pipeline config package public API.

File: src/crate_pipeline/config/__init__.py

Purpose
- Export tool config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``crate-pipeline.toml`` + ``CRATE_PIPELINE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from crate_pipeline.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    normalize_paths,
)
from crate_pipeline.config.schema import (
    DEFAULT_CONFIG,
    FLOOR_POLICIES,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ToolConfig,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "FLOOR_POLICIES",
    "PATH_FIELDS",
    "ToolConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
]
