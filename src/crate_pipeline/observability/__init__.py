"""Logging configuration."""

from crate_pipeline.observability.logging import configure_logging

__all__ = ["configure_logging"]
