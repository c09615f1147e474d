"""Deterministic wrapper around the ``cargo`` CLI."""

from __future__ import annotations

import json
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class CargoError(RuntimeError):
    """Base error for cargo invocation failures."""


class CargoCommandError(CargoError):
    """Raised when a cargo subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"cargo command failed ({returncode}): {shlex.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


class CargoCLI:
    """Runs cargo subcommands inside one crate directory.

    Implements both the resolver capability (``update``/``pin``) used by the
    minimal-versions procedure and the builder capability (``check``).
    """

    def __init__(
        self,
        crate_dir: Path | str,
        *,
        executable: str = "cargo",
        env_overrides: Mapping[str, str] | None = None,
        logger: Any | None = None,
    ) -> None:
        self.crate_dir = Path(crate_dir).resolve()
        self.executable = executable
        self._env_overrides = dict(env_overrides or {})
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def metadata(self) -> dict[str, Any]:
        """Return ``cargo metadata --format-version 1`` as parsed JSON."""

        result = self._run_cargo(["metadata", "--format-version", "1"])
        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise CargoError(f"cargo metadata returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise CargoError("cargo metadata returned a non-object payload")
        return payload

    def update(self, *, toolchain: str | None = None, minimal_versions: bool = False) -> None:
        args = ["update"]
        if minimal_versions:
            args.extend(["-Z", "minimal-versions"])
        self._run_cargo(args, toolchain=toolchain)

    def pin(self, dependency: str, version: str, *, rename: str | None = None) -> None:
        """Pin ``dependency`` to exactly ``version`` in the crate manifest."""

        args = ["add", f"{dependency}@={version}"]
        if rename is not None:
            args.extend(["--rename", rename])
        self._run_cargo(args)

    def check(self, *, toolchain: str | None = None, feature_flags: str = "") -> None:
        self._run_cargo(["check", "--lib", *shlex.split(feature_flags)], toolchain=toolchain)

    def _run_cargo(
        self,
        args: Sequence[str],
        *,
        toolchain: str | None = None,
    ) -> CommandResult:
        command = (self.executable, *((f"+{toolchain}",) if toolchain else ()), *args)
        env = os.environ.copy()
        env.setdefault("CARGO_TERM_COLOR", "never")
        env.update(self._env_overrides)

        self._logger.debug("cargo_command_start", command=shlex.join(command))
        try:
            completed = subprocess.run(
                command,
                cwd=self.crate_dir,
                env=env,
                text=True,
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise CargoError(f"unable to run {shlex.join(command)}: {exc}") from exc

        result = CommandResult(
            command=command,
            cwd=self.crate_dir.as_posix(),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
        self._logger.debug(
            "cargo_command_finished",
            command=shlex.join(command),
            returncode=result.returncode,
        )

        if result.returncode != 0:
            raise CargoCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result


__all__ = [
    "CargoCLI",
    "CargoCommandError",
    "CargoError",
    "CommandResult",
]
