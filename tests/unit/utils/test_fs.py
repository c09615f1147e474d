"""
crate-pipeline — unit tests for filesystem helpers

File: tests/unit/utils/test_fs.py

Purpose
- Validate atomic replacement and exclusive creation semantics.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from crate_pipeline.utils.fs import atomic_write, read_text_if_exists, write_exclusive


def test_atomic_write_replaces_content_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "redis.yml"
    target.write_text("old", encoding="utf-8")

    atomic_write(target, "name: deadpool-redis\n")
    atomic_write(tmp_path / "raw.bin", b"\x00\x01")

    assert target.read_text(encoding="utf-8") == "name: deadpool-redis\n"
    assert (tmp_path / "raw.bin").read_bytes() == b"\x00\x01"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["raw.bin", "redis.yml"]


def test_atomic_write_requires_existing_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "file.yml", "x")


def test_write_exclusive_refuses_existing_path(tmp_path: Path) -> None:
    target = tmp_path / "Cargo.toml.bak"

    write_exclusive(target, b"backup")
    with pytest.raises(FileExistsError):
        write_exclusive(target, b"second")

    assert target.read_bytes() == b"backup"


def test_read_text_if_exists(tmp_path: Path) -> None:
    assert read_text_if_exists(tmp_path / "absent.yml") is None
    (tmp_path / "present.yml").write_text("on: push\n", encoding="utf-8")
    assert read_text_if_exists(tmp_path / "present.yml") == "on: push\n"
