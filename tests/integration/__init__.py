"""
crate-pipeline — integration test package

File: tests/integration/__init__.py

Purpose
- Test package marker for subprocess-level contracts.

Functional requirements
- Must not import heavy modules at import time; keep test collection fast.
- Must not require a real cargo toolchain or network access.
"""
