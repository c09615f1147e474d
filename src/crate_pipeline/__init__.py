"""
crate-pipeline — package root

File: src/crate_pipeline/__init__.py

Purpose
- CI workflow compiler and minimum-supported-version resolver for multi-crate
  Cargo repositories.

Import boundary rules
- No side effects at import time (no config loading, no logging setup).
- Heavy submodules (subprocess wrappers, YAML emitters) are imported by callers.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
