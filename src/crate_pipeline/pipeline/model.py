"""Pipeline definition model and compiler settings."""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from crate_pipeline.constants import (
    DEFAULT_CRATES_DIR,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_NIGHTLY_TOOLCHAIN,
    DEFAULT_TOOLCHAIN,
    INTEGRATION_CHECK_CRATES,
    REFERENCE_OPERATING_SYSTEMS,
)

JobSpec = dict[str, Any]

DEFAULT_TOOL_INSTALL: Final[str] = "pip install crate-pipeline"
DEFAULT_TOOL_COMMAND: Final[str] = "crate-pipeline"


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    """Repository-wide knobs the compiler needs; built from tool config."""

    crates_path: str = DEFAULT_CRATES_DIR
    main_branch: str = DEFAULT_MAIN_BRANCH
    toolchain: str = DEFAULT_TOOLCHAIN
    nightly_toolchain: str = DEFAULT_NIGHTLY_TOOLCHAIN
    operating_systems: tuple[str, ...] = REFERENCE_OPERATING_SYSTEMS
    integration_crates: frozenset[str] = INTEGRATION_CHECK_CRATES
    tool_install: str = DEFAULT_TOOL_INSTALL
    tool_command: str = DEFAULT_TOOL_COMMAND
    runner: str = "ubuntu-latest"

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        crates_path: str = DEFAULT_CRATES_DIR,
    ) -> PipelineSettings:
        pipeline = config.get("pipeline", {})
        return cls(
            crates_path=crates_path,
            main_branch=pipeline.get("main_branch", DEFAULT_MAIN_BRANCH),
            toolchain=pipeline.get("toolchain", DEFAULT_TOOLCHAIN),
            nightly_toolchain=pipeline.get("nightly_toolchain", DEFAULT_NIGHTLY_TOOLCHAIN),
            operating_systems=tuple(
                pipeline.get("operating_systems", REFERENCE_OPERATING_SYSTEMS)
            ),
            integration_crates=frozenset(
                pipeline.get("integration_crates", INTEGRATION_CHECK_CRATES)
            ),
            tool_install=pipeline.get("tool_install", DEFAULT_TOOL_INSTALL),
            tool_command=pipeline.get("tool_command", DEFAULT_TOOL_COMMAND),
        )


@dataclass(frozen=True, slots=True)
class PipelineDefinition:
    """One compiled workflow; ``jobs`` keeps generation order."""

    name: str
    triggers: dict[str, Any]
    env: dict[str, Any]
    defaults: dict[str, Any]
    jobs: dict[str, JobSpec] = field(default_factory=dict)

    @property
    def job_names(self) -> Sequence[str]:
        return tuple(self.jobs)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(
            {
                "name": self.name,
                "on": self.triggers,
                "env": self.env,
                "defaults": self.defaults,
                "jobs": self.jobs,
            }
        )


__all__ = ["JobSpec", "PipelineDefinition", "PipelineSettings"]
