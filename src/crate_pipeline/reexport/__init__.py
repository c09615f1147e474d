"""Backend feature re-export verification."""

from crate_pipeline.reexport.checker import (
    BackendNotFoundError,
    MissingBackendError,
    ReexportError,
    ReexportReport,
    backend_features,
    check_reexports,
    crate_reexports,
    render_side_by_side,
)

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
