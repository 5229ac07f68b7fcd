"""Pipeline entities: trigger event, run states, artifact, release, run record.

All entities live for a single run. The trigger event is immutable; the run
record is the only mutable object and only moves forward through RunState.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tagrel.core.result import Err, Ok, Result
from tagrel.pipeline.errors import PipelineError

TAG_REF_PREFIX = "refs/tags/"
BRANCH_REF_PREFIX = "refs/heads/"


def normalize_ref(ref: str) -> str:
    """Qualify a bare tag name.

    Example: normalize_ref("v1.2.0") -> "refs/tags/v1.2.0"
    """
    s = ref.strip()
    if s.startswith("refs/"):
        return s
    return TAG_REF_PREFIX + s


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """A pushed ref.

    Attributes:
        ref: Fully qualified ref, e.g. refs/tags/v1.2.0
        repository: owner/name slug
        sha: Commit the ref pointed to when pushed, when known
    """

    ref: str
    repository: str
    sha: str | None = None

    @classmethod
    def from_ref(cls, ref: str, repository: str, sha: str | None = None) -> TriggerEvent:
        return cls(ref=normalize_ref(ref), repository=repository.strip(), sha=sha)

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> Result[TriggerEvent, str]:
        """Build the event from GitHub Actions variables."""
        ref = (env.get("GITHUB_REF") or "").strip()
        repo = (env.get("GITHUB_REPOSITORY") or "").strip()
        if not ref:
            return Err("GITHUB_REF is not set")
        if not repo:
            return Err("GITHUB_REPOSITORY is not set")
        sha = (env.get("GITHUB_SHA") or "").strip() or None
        return Ok(cls.from_ref(ref, repo, sha))

    @property
    def is_tag(self) -> bool:
        return self.ref.startswith(TAG_REF_PREFIX)

    @property
    def tag(self) -> str | None:
        """Short tag name, or None for non-tag refs."""
        if not self.is_tag:
            return None
        return self.ref[len(TAG_REF_PREFIX) :]


class RunState(Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    GATED = "gated"
    CHECKED_OUT = "checked_out"
    TOOLCHAIN_READY = "toolchain_ready"
    BUILT = "built"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.PUBLISHED, RunState.FAILED, RunState.CANCELLED)


_HAPPY_PATH: dict[RunState, RunState] = {
    RunState.IDLE: RunState.TRIGGERED,
    RunState.TRIGGERED: RunState.GATED,
    RunState.GATED: RunState.CHECKED_OUT,
    RunState.CHECKED_OUT: RunState.TOOLCHAIN_READY,
    RunState.TOOLCHAIN_READY: RunState.BUILT,
    RunState.BUILT: RunState.PUBLISHED,
}


class InvalidTransition(RuntimeError):
    """A run record was moved out of order. This is a bug, not a run failure."""

    def __init__(self, current: RunState, target: RunState) -> None:
        super().__init__(f"invalid run transition: {current} -> {target}")
        self.current = current
        self.target = target


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """The compiled binary, consumed once by publish."""

    path: Path
    bin_name: str
    runner: str

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True, slots=True)
class Release:
    """A release on the hosting service, identified by its tag."""

    repo: str
    tag: str

    def asset_url(self, asset_name: str) -> str:
        return f"https://github.com/{self.repo}/releases/download/{self.tag}/{asset_name}"


def _initial_history() -> list[RunState]:
    return [RunState.IDLE]


@dataclass
class RunRecord:
    """Progress of one matrix entry through the pipeline."""

    run_id: str
    runner: str
    event: TriggerEvent
    state: RunState = RunState.IDLE
    history: list[RunState] = field(default_factory=_initial_history)
    error: PipelineError | None = None
    artifact: BuildArtifact | None = None
    asset_url: str | None = None

    def advance(self, target: RunState) -> None:
        """Move one step along the success path.

        Raises:
            InvalidTransition: target is not the next state.
        """
        if _HAPPY_PATH.get(self.state) != target:
            raise InvalidTransition(self.state, target)
        self._enter(target)

    def fail(self, error: PipelineError) -> None:
        if self.state.is_terminal:
            raise InvalidTransition(self.state, RunState.FAILED)
        self.error = error
        self._enter(RunState.FAILED)

    def cancel(self, error: PipelineError) -> None:
        if self.state.is_terminal:
            raise InvalidTransition(self.state, RunState.CANCELLED)
        self.error = error
        self._enter(RunState.CANCELLED)

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.PUBLISHED

    def _enter(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)
