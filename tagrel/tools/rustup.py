"""Rust toolchain installation through rustup.

Installing an already-installed channel is a no-op for rustup, so the step is
idempotent and safe to repeat on every run.
"""

from __future__ import annotations

from pathlib import Path

from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import ConsoleProtocol, Style
from tagrel.pipeline.errors import ToolchainInstallFailed, ToolMissing
from tagrel.platform.process import run_silent
from tagrel.tools.base import RUSTUP

__all__ = ["install_command", "install_toolchain"]


def install_command(channel: str, profile: str) -> list[str]:
    return ["rustup", "toolchain", "install", channel, "--profile", profile, "--no-self-update"]


def install_toolchain(
    *,
    channel: str,
    profile: str,
    cwd: Path,
    console: ConsoleProtocol,
    dry_run: bool,
) -> Result[None, ToolMissing | ToolchainInstallFailed]:
    cmd = install_command(channel, profile)
    console.print(" ".join(cmd), Style.DIM)
    if dry_run:
        return Ok(None)

    if not RUSTUP.is_installed():
        return Err(ToolMissing(tool_id=RUSTUP.id, hint=RUSTUP.install_hint))

    result = run_silent(cmd, cwd=cwd)
    if isinstance(result, Err):
        return Err(ToolchainInstallFailed(channel=channel, returncode=result.error.returncode))
    return Ok(None)
