"""Shared utilities."""

from crate_pipeline.utils.fs import atomic_write, read_text_if_exists, write_exclusive

__all__ = ["atomic_write", "read_text_if_exists", "write_exclusive"]
