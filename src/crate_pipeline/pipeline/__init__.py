"""Pipeline compilation: feature flags, job synthesis, and workflow rendering."""

from crate_pipeline.pipeline.compiler import PipelineConfigurationError, compile_pipeline
from crate_pipeline.pipeline.features import ALL_FEATURES_FLAG, command, flags_for
from crate_pipeline.pipeline.model import JobSpec, PipelineDefinition, PipelineSettings
from crate_pipeline.pipeline.render import (
    GenerationReport,
    GenerationResult,
    compile_crate,
    discover_crate_dirs,
    generate_workflows,
    render_workflow,
    workflow_path,
)

__all__ = [
    "ALL_FEATURES_FLAG",
    "GenerationReport",
    "GenerationResult",
    "JobSpec",
    "PipelineConfigurationError",
    "PipelineDefinition",
    "PipelineSettings",
    "command",
    "compile_crate",
    "compile_pipeline",
    "discover_crate_dirs",
    "flags_for",
    "generate_workflows",
    "render_workflow",
    "workflow_path",
]
