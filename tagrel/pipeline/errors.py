"""Pipeline error taxonomy.

Each variant is a fatal outcome of one step. A ref that does not match the tag
filter is not an error and has no variant here.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class RunnerUnavailable:
    runner: str
    host: str


@dataclass(frozen=True, slots=True)
class WorkdirFailed:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class CheckoutFailed:
    repo: str
    ref: str
    message: str


@dataclass(frozen=True, slots=True)
class ToolMissing:
    tool_id: str
    hint: str


@dataclass(frozen=True, slots=True)
class ToolchainInstallFailed:
    channel: str
    returncode: int


@dataclass(frozen=True, slots=True)
class CompileFailed:
    returncode: int


@dataclass(frozen=True, slots=True)
class OutputMissing:
    path: Path


@dataclass(frozen=True, slots=True)
class PublishFailed:
    """Release upload failed.

    kind is the release-layer error kind (permission_denied, gh_auth_required, ...).
    """

    kind: str
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class Cancelled:
    group: str
    reason: str


PipelineError = (
    RunnerUnavailable
    | WorkdirFailed
    | CheckoutFailed
    | ToolMissing
    | ToolchainInstallFailed
    | CompileFailed
    | OutputMissing
    | PublishFailed
    | Cancelled
)
