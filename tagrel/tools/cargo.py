"""Release build through cargo.

Build output is streamed to the terminal untouched; a compile error shows up in
the run log exactly as cargo printed it.
"""

from __future__ import annotations

from pathlib import Path

from tagrel.core.config import BuildConfig
from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import ConsoleProtocol, Style
from tagrel.pipeline.errors import CompileFailed, OutputMissing, ToolMissing
from tagrel.platform.detection import Platform
from tagrel.platform.process import run_silent
from tagrel.tools.base import CARGO

__all__ = ["artifact_path", "build_command", "build_release"]


def build_command(channel: str, build: BuildConfig) -> list[str]:
    """cargo invocation for the configured toolchain channel and profile.

    Example: build_command("stable", BuildConfig())
        -> ["cargo", "+stable", "build", "--verbose", "--release"]
    """
    cmd = ["cargo", f"+{channel}", "build"]
    if build.verbose:
        cmd.append("--verbose")
    if build.profile == "release":
        cmd.append("--release")
    else:
        cmd += ["--profile", build.profile]
    return cmd


def artifact_path(checkout: Path, build: BuildConfig, bin_name: str, platform: Platform) -> Path:
    """Where cargo leaves the binary, e.g. <checkout>/target/release/proxy.exe."""
    return checkout / build.output_dir / platform.exe_name(bin_name)


def build_release(
    *,
    checkout: Path,
    channel: str,
    build: BuildConfig,
    expected: Path,
    console: ConsoleProtocol,
    dry_run: bool,
) -> Result[Path, ToolMissing | CompileFailed | OutputMissing]:
    cmd = build_command(channel, build)
    console.print(" ".join(cmd), Style.DIM)
    if dry_run:
        return Ok(expected)

    if not CARGO.is_installed():
        return Err(ToolMissing(tool_id=CARGO.id, hint=CARGO.install_hint))

    result = run_silent(cmd, cwd=checkout)
    if isinstance(result, Err):
        return Err(CompileFailed(returncode=result.error.returncode))

    if not expected.is_file():
        return Err(OutputMissing(path=expected))
    return Ok(expected)
