"""
crate-pipeline — minimal-versions subprocess contracts

File: tests/integration/test_minimal_versions_cli.py

Purpose
- Run ``python -m crate_pipeline update-minimal-versions`` from a crate directory
  the way the generated MSRV job does, with a scripted ``cargo`` on ``PATH``.

Functional requirements
- The manifest is byte-identical afterwards, on success and on failure.
- The workspace lockfile (above the crate directory) is used for floors.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

pytestmark = pytest.mark.skipif(os.name == "nt", reason="scripted cargo needs a POSIX shebang")

_FAKE_CARGO = """#!{python}
import json
import os
import sys
from pathlib import Path

args = sys.argv[1:]
with open(os.environ["FAKE_CARGO_LOG"], "a", encoding="utf-8") as handle:
    handle.write(json.dumps(args) + "\\n")
if args and args[0].startswith("+"):
    args = args[1:]
if args[:3] == ["update", "-Z", "minimal-versions"]:
    Path(os.environ["FAKE_CARGO_LOCK_PATH"]).write_text(
        os.environ["FAKE_CARGO_LOCK"], encoding="utf-8"
    )
elif args[:1] == ["add"]:
    with open("Cargo.toml", "a", encoding="utf-8") as handle:
        handle.write("# " + " ".join(args) + "\\n")
    if args[1].split("@")[0] == os.environ.get("FAKE_CARGO_FAIL_ADD"):
        sys.stderr.write("error: failed to add dependency\\n")
        sys.exit(101)
elif args[:1] not in (["update"], ["check"]):
    sys.stderr.write("unsupported: " + " ".join(args) + "\\n")
    sys.exit(101)
"""

_MANIFEST = """[package]
name = "deadpool-postgres"
version = "0.14.0"
rust-version = "1.75"

[dependencies]
deadpool = { path = "../deadpool", version = "0.12.0" }
serde = { package = "serde", version = "1.0", optional = true }
tokio-postgres = "0.7.2"
tokio1 = { package = "tokio", version = "1.0" }
"""

_LOCK = """version = 3

[[package]]
name = "serde"
version = "1.0.0"

[[package]]
name = "tokio"
version = "1.0.0"

[[package]]
name = "tokio-postgres"
version = "0.7.2"
"""


def _setup(tmp_path: Path) -> tuple[Path, dict[str, str]]:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    cargo = bin_dir / "cargo"
    cargo.write_text(_FAKE_CARGO.format(python=sys.executable), encoding="utf-8")
    cargo.chmod(0o755)

    repo = tmp_path / "repo"
    crate_dir = repo / "crates" / "postgres"
    crate_dir.mkdir(parents=True)
    (crate_dir / "Cargo.toml").write_text(_MANIFEST, encoding="utf-8")
    (crate_dir / "ci.config.yml").write_text("features:\n  own: [rt_tokio_1]\n", encoding="utf-8")

    env = os.environ.copy()
    existing_pythonpath = env.get("PYTHONPATH")
    env["PYTHONPATH"] = (
        str(SRC_PATH) if not existing_pythonpath else f"{SRC_PATH}{os.pathsep}{existing_pythonpath}"
    )
    env["PATH"] = f"{bin_dir}{os.pathsep}{env.get('PATH', '')}"
    env["FAKE_CARGO_LOG"] = str(tmp_path / "cargo.log")
    env["FAKE_CARGO_LOCK"] = _LOCK
    env["FAKE_CARGO_LOCK_PATH"] = str(repo / "Cargo.lock")
    return crate_dir, env


def _run(crate_dir: Path, env: dict[str, str], *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [
            sys.executable,
            "-m",
            "crate_pipeline",
            "update-minimal-versions",
            *args,
            "--repo-root",
            str(crate_dir.parents[1]),
        ],
        cwd=crate_dir,
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )


def _cargo_calls(env: dict[str, str]) -> list[list[str]]:
    lines = Path(env["FAKE_CARGO_LOG"]).read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_resolution_pins_floors_and_restores_manifest(tmp_path: Path) -> None:
    crate_dir, env = _setup(tmp_path)
    original = (crate_dir / "Cargo.toml").read_bytes()

    result = _run(crate_dir, env, "1.75", "--check")

    assert result.returncode == 0, result.stderr
    assert _cargo_calls(env) == [
        ["+nightly", "update", "-Z", "minimal-versions"],
        ["add", "serde@=1.0.0"],
        ["add", "tokio-postgres@=0.7.2"],
        ["add", "tokio@=1.0.0", "--rename", "tokio1"],
        ["+1.75", "update"],
        ["+1.75", "check", "--lib", "--features", "rt_tokio_1"],
    ]
    assert (crate_dir / "Cargo.toml").read_bytes() == original
    assert not (crate_dir / "Cargo.toml.bak").exists()
    assert "tokio-postgres" in result.stdout


def test_failed_pin_exits_with_resolution_error_and_restores(tmp_path: Path) -> None:
    crate_dir, env = _setup(tmp_path)
    env["FAKE_CARGO_FAIL_ADD"] = "tokio-postgres"
    original = (crate_dir / "Cargo.toml").read_bytes()

    result = _run(crate_dir, env, "1.75")

    assert result.returncode == 3
    assert "failed to add dependency" in result.stderr
    assert (crate_dir / "Cargo.toml").read_bytes() == original
    assert not (crate_dir / "Cargo.toml.bak").exists()


def test_stale_backup_blocks_the_run(tmp_path: Path) -> None:
    crate_dir, env = _setup(tmp_path)
    (crate_dir / "Cargo.toml.bak").write_text("from a killed run", encoding="utf-8")

    result = _run(crate_dir, env, "1.75")

    assert result.returncode == 3
    assert "is locked" in result.stderr
    assert not Path(env["FAKE_CARGO_LOG"]).exists()
