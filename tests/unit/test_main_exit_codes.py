"""
crate-pipeline — unit tests for the process exit-code contract

File: tests/unit/test_main_exit_codes.py

Purpose
- Validate that ``cli_entrypoint`` maps every error category to its exit code and
  prints a one-line message (or a traceback for internal errors) on stderr.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from crate_pipeline.cargo import CargoCommandError
from crate_pipeline.main import ExitCode, cli_entrypoint
from crate_pipeline.ui import cli as cli_module


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _crate(tmp_path: Path, *, override: str = "") -> Path:
    crate_dir = tmp_path / "crates" / "redis"
    _write(
        crate_dir / "Cargo.toml",
        '[package]\nname = "deadpool-redis"\nrust-version = "1.75"\n\n'
        '[dependencies]\nredis = "0.27"\n',
    )
    if override:
        _write(crate_dir / "ci.config.yml", override)
    return crate_dir


class _EmptyLockCargo:
    def __init__(self, crate_dir: Path | str, **_kwargs: Any) -> None:
        self.crate_dir = Path(crate_dir)

    def update(self, *, toolchain: str | None = None, minimal_versions: bool = False) -> None:
        if minimal_versions:
            (self.crate_dir / "Cargo.lock").write_text("version = 3\n", encoding="utf-8")

    def pin(self, dependency: str, version: str, *, rename: str | None = None) -> None:
        raise AssertionError("nothing should be pinned")


class _FailingCargo(_EmptyLockCargo):
    def update(self, *, toolchain: str | None = None, minimal_versions: bool = False) -> None:
        raise CargoCommandError(
            command=("cargo", "+nightly", "update", "-Z", "minimal-versions"),
            returncode=101,
            stdout="",
            stderr="error: toolchain 'nightly' is not installed",
        )


def test_success_is_zero(tmp_path: Path) -> None:
    _crate(tmp_path)

    assert cli_entrypoint(["generate", "--repo-root", str(tmp_path)]) == ExitCode.SUCCESS


def test_usage_error_is_two(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["no-such-command"]) == 2
    assert "invalid choice" in capsys.readouterr().err


def test_manifest_error_is_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(tmp_path / "crates" / "bare" / "Cargo.toml", '[package]\nname = "bare"\n')

    assert cli_entrypoint(["generate", "--repo-root", str(tmp_path)]) == ExitCode.CONFIG_ERROR
    assert "rust-version missing" in capsys.readouterr().err


def test_override_document_error_is_config_error(tmp_path: Path) -> None:
    _crate(tmp_path, override="features:\n  own: rt_tokio_1\n")

    assert cli_entrypoint(["generate", "--repo-root", str(tmp_path)]) == ExitCode.CONFIG_ERROR


def test_missing_backend_is_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    crate_dir = _crate(tmp_path)

    exit_code = cli_entrypoint(
        ["check-reexports", "--crate-dir", str(crate_dir), "--repo-root", str(tmp_path)]
    )

    assert exit_code == ExitCode.CONFIG_ERROR
    assert 'error: "backend" missing in ci.config.yml' in capsys.readouterr().err


def test_missing_floor_is_resolution_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    crate_dir = _crate(tmp_path)
    monkeypatch.setattr(cli_module, "CargoCLI", _EmptyLockCargo)

    exit_code = cli_entrypoint(
        [
            "update-minimal-versions",
            "1.75",
            "--manifest-path",
            str(crate_dir / "Cargo.toml"),
            "--repo-root",
            str(tmp_path),
        ]
    )

    assert exit_code == ExitCode.RESOLUTION_ERROR
    assert "no version found" in capsys.readouterr().err
    assert not (crate_dir / "Cargo.toml.bak").exists()


def test_cargo_failure_is_resolution_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    crate_dir = _crate(tmp_path)
    monkeypatch.setattr(cli_module, "CargoCLI", _FailingCargo)

    exit_code = cli_entrypoint(
        [
            "update-minimal-versions",
            "1.75",
            "--manifest-path",
            str(crate_dir / "Cargo.toml"),
            "--repo-root",
            str(tmp_path),
        ]
    )

    assert exit_code == ExitCode.RESOLUTION_ERROR
    assert "toolchain 'nightly' is not installed" in capsys.readouterr().err


def test_unexpected_error_is_internal_with_traceback(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def _explode(*_args: Any, **_kwargs: Any) -> None:
        raise KeyError("jobs")

    monkeypatch.setattr(cli_module, "generate_workflows", _explode)

    assert cli_entrypoint(["generate", "--repo-root", str(tmp_path)]) == ExitCode.INTERNAL_ERROR
    assert "Traceback" in capsys.readouterr().err
