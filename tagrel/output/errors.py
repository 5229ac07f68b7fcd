"""Error presentation utilities.

Centralized error formatting and exit code mapping for pipeline failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tagrel.core.errors import ErrorCode
from tagrel.output.console import Style
from tagrel.pipeline.errors import (
    Cancelled,
    CheckoutFailed,
    CompileFailed,
    OutputMissing,
    PipelineError,
    PublishFailed,
    RunnerUnavailable,
    ToolchainInstallFailed,
    ToolMissing,
    WorkdirFailed,
)

if TYPE_CHECKING:
    from tagrel.output.console import ConsoleProtocol

__all__ = ["pipeline_error_exit_code", "print_pipeline_error"]

_PUBLISH_ENV_KINDS = frozenset({"gh_missing", "gh_auth_required", "permission_denied"})


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    match error:
        case RunnerUnavailable(runner=runner, host=host):
            console.error(f"no {runner} runner available on this host ({host})")
            console.print("hint: run with --platform matching the host, or use --dry-run", Style.DIM)
        case WorkdirFailed(path=path, reason=reason):
            console.error(f"cannot create work directory in {path}: {reason}")
        case CheckoutFailed(repo=repo, ref=ref, message=message):
            console.error(f"checkout of {repo}@{ref} failed")
            console.print(message, Style.DIM)
        case ToolMissing(tool_id=tool_id, hint=hint):
            console.error(f"{tool_id}: missing")
            console.print(f"hint: {hint}", Style.DIM)
        case ToolchainInstallFailed(channel=channel, returncode=rc):
            console.error(f"rust toolchain {channel} install failed (exit {rc})")
        case CompileFailed(returncode=rc):
            console.error(f"build failed (exit {rc})")
        case OutputMissing(path=path):
            console.error(f"output not found: {path}")
        case PublishFailed(message=message, hint=hint):
            console.error(message)
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case Cancelled(group=group, reason=reason):
            console.warning(f"run in group {group} cancelled: {reason}")


def pipeline_error_exit_code(error: PipelineError) -> int:
    match error:
        case RunnerUnavailable() | ToolMissing():
            return int(ErrorCode.ENV_ERROR)
        case WorkdirFailed():
            return int(ErrorCode.IO_ERROR)
        case CheckoutFailed():
            return int(ErrorCode.NETWORK_ERROR)
        case ToolchainInstallFailed() | CompileFailed() | OutputMissing():
            return int(ErrorCode.BUILD_ERROR)
        case PublishFailed(kind=kind):
            if kind in _PUBLISH_ENV_KINDS:
                return int(ErrorCode.ENV_ERROR)
            return int(ErrorCode.NETWORK_ERROR)
        case Cancelled():
            return int(ErrorCode.CANCELLED)
