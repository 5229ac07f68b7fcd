"""Subprocess execution for the pipeline's external tools.

git, rustup, cargo and gh all run through here. `run` captures stdout for
commands whose output is parsed (gh JSON, git rev-parse); `run_silent` lets the
child write straight to the terminal so cargo and rustup logs appear verbatim.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from tagrel.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_silent"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that exited non-zero, timed out or could not start.

    returncode is -1 when the process never produced an exit status.
    stdout and stderr are empty for commands run with run_silent.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"


def _execute(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None,
    timeout: float | None,
    *,
    capture: bool,
) -> Result[subprocess.CompletedProcess[str], ProcessError]:
    argv = tuple(cmd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=capture,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(argv, -1, partial, f"timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(argv, -1, "", str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(argv, proc.returncode, proc.stdout or "", proc.stderr or ""))
    return Ok(proc)


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run cmd in cwd and return its stdout.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Full environment for the child (inherits ours if None).
        timeout: Seconds before the child is killed (None waits forever).
    """
    result = _execute(cmd, cwd, env, timeout, capture=True)
    if isinstance(result, Err):
        return result
    return Ok(result.value.stdout)


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[None, ProcessError]:
    """Run cmd with its output going to our terminal."""
    result = _execute(cmd, cwd, env, timeout, capture=False)
    if isinstance(result, Err):
        return result
    return Ok(None)
