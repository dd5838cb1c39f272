"""Subprocess wrapper — the single mock seam for all docker calls."""

import os
import subprocess
from dataclasses import dataclass


@dataclass
class Result:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _merged_env(env: dict[str, str] | None) -> dict[str, str] | None:
    if env is None:
        return None
    return {**os.environ, **env}


def run(args: list[str], env: dict[str, str] | None = None, cwd: str | None = None) -> Result:
    """Run a command and capture output. Never raises on non-zero exit."""
    proc = subprocess.run(
        args,
        capture_output=True,
        text=True,
        env=_merged_env(env),
        cwd=cwd,
    )
    return Result(returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)


def run_streaming(
    args: list[str], env: dict[str, str] | None = None, cwd: str | None = None
) -> int:
    """Run a command with passthrough stdout/stderr. Returns exit code."""
    proc = subprocess.run(
        args,
        env=_merged_env(env),
        cwd=cwd,
    )
    return proc.returncode
