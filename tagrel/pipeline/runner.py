"""The release pipeline for one matrix entry.

Steps run strictly in order and stop at the first failure:

    Idle -> Triggered -> Gated -> CheckedOut -> ToolchainReady -> Built -> Published

Any step error moves the record to Failed. The cancellation token is checked
before each step; a superseded run moves to Cancelled instead.
"""

from __future__ import annotations

import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from tagrel.core.config import Config
from tagrel.core.result import Err
from tagrel.git.repository import clone_command, clone_source, clone_url
from tagrel.output.console import ConsoleProtocol, Style
from tagrel.pipeline.concurrency import CancellationToken, group_key
from tagrel.pipeline.errors import (
    Cancelled,
    CheckoutFailed,
    PublishFailed,
    RunnerUnavailable,
    ToolMissing,
    WorkdirFailed,
)
from tagrel.pipeline.model import BuildArtifact, Release, RunRecord, RunState, TriggerEvent
from tagrel.platform.detection import Platform, detect_platform, platform_for_runner
from tagrel.release.gh import publish_asset
from tagrel.tools.base import GIT
from tagrel.tools.cargo import artifact_path, build_release
from tagrel.tools.rustup import install_toolchain


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Per-invocation settings that are not part of the project config.

    Attributes:
        source: Local checkout to clone from instead of the hosted repository
        work_root: Parent directory for run work directories (system temp if None)
        keep_workdir: Leave the checkout on disk after the run
        dry_run: Print commands without executing them
    """

    source: Path | None = None
    work_root: Path | None = None
    keep_workdir: bool = False
    dry_run: bool = False


class ReleasePipeline:
    """Runs the linear pipeline for one runner label."""

    def __init__(
        self,
        *,
        config: Config,
        bin_name: str,
        console: ConsoleProtocol,
        options: RunOptions | None = None,
        host: Platform | None = None,
    ) -> None:
        self._config = config
        self._bin_name = bin_name
        self._console = console
        self._options = options or RunOptions()
        self._host = host if host is not None else detect_platform()

    def start(self, event: TriggerEvent, runner: str) -> RunRecord:
        """Create a record for a triggered event."""
        record = RunRecord(run_id=uuid4().hex[:12], runner=runner, event=event)
        record.advance(RunState.TRIGGERED)
        return record

    def run(self, record: RunRecord, token: CancellationToken) -> RunRecord:
        """Drive a triggered, gated record to a terminal state."""
        if self._cancelled(record, token):
            return record
        record.advance(RunState.GATED)

        platform = platform_for_runner(record.runner)
        if not self._options.dry_run and platform != self._host:
            record.fail(RunnerUnavailable(runner=record.runner, host=str(self._host)))
            return record

        workdir = self._make_workdir(record)
        if workdir is None:
            return record
        try:
            self._run_steps(record, token, workdir, platform)
        finally:
            self._cleanup(workdir)
        return record

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _run_steps(
        self, record: RunRecord, token: CancellationToken, workdir: Path, platform: Platform
    ) -> None:
        dry_run = self._options.dry_run
        checkout = workdir / "src"
        event = record.event

        if self._cancelled(record, token):
            return
        self._console.header(f"[{record.runner}] Checkout {event.ref}")
        if not self._checkout(record, checkout):
            return
        record.advance(RunState.CHECKED_OUT)

        if self._cancelled(record, token):
            return
        self._console.header(f"[{record.runner}] Install Rust {self._config.toolchain.channel}")
        installed = install_toolchain(
            channel=self._config.toolchain.channel,
            profile=self._config.toolchain.profile,
            cwd=workdir,
            console=self._console,
            dry_run=dry_run,
        )
        if isinstance(installed, Err):
            record.fail(installed.error)
            return
        record.advance(RunState.TOOLCHAIN_READY)

        if self._cancelled(record, token):
            return
        self._console.header(f"[{record.runner}] Build")
        expected = artifact_path(checkout, self._config.build, self._bin_name, platform)
        built = build_release(
            checkout=checkout,
            channel=self._config.toolchain.channel,
            build=self._config.build,
            expected=expected,
            console=self._console,
            dry_run=dry_run,
        )
        if isinstance(built, Err):
            record.fail(built.error)
            return
        record.artifact = BuildArtifact(path=built.value, bin_name=self._bin_name, runner=record.runner)
        record.advance(RunState.BUILT)

        if self._cancelled(record, token):
            return
        tag = event.tag or event.ref
        release = Release(repo=self._config.publish.repo or event.repository, tag=tag)
        self._console.header(f"[{record.runner}] Upload {record.artifact.name} to {release.repo}@{tag}")
        published = publish_asset(
            workspace_root=workdir,
            release=release,
            path=record.artifact.path,
            console=self._console,
            dry_run=dry_run,
        )
        if isinstance(published, Err):
            e = published.error
            record.fail(PublishFailed(kind=e.kind, message=e.message, hint=e.hint))
            return
        record.asset_url = published.value
        record.advance(RunState.PUBLISHED)

    def _checkout(self, record: RunRecord, dest: Path) -> bool:
        event = record.event
        url = clone_url(event.repository, self._options.source)
        checkout_cfg = self._config.checkout
        cmd = clone_command(
            url, dest, ref=event.ref, depth=checkout_cfg.depth, submodules=checkout_cfg.submodules
        )
        self._console.print(" ".join(cmd), Style.DIM)
        if self._options.dry_run:
            return True

        if not GIT.is_installed():
            record.fail(ToolMissing(tool_id=GIT.id, hint=GIT.install_hint))
            return False

        cloned = clone_source(
            url,
            dest,
            ref=event.ref,
            depth=checkout_cfg.depth,
            submodules=checkout_cfg.submodules,
        )
        if isinstance(cloned, Err):
            record.fail(CheckoutFailed(repo=event.repository, ref=event.ref, message=cloned.error.message))
            return False

        head = cloned.value.head_sha()
        if isinstance(head, Err):
            record.fail(CheckoutFailed(repo=event.repository, ref=event.ref, message=head.error.message))
            return False
        if event.sha is not None and head.value != event.sha:
            # The tag moved after the push; a newer run owns the new commit.
            self._console.warning(f"{event.ref} now points to {head.value[:12]}, pushed {event.sha[:12]}")
        self._console.print(f"HEAD {head.value}", Style.DIM)
        return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _cancelled(self, record: RunRecord, token: CancellationToken) -> bool:
        if not token.is_cancelled:
            return False
        group = group_key(self._config.workflow, record.event.ref)
        record.cancel(Cancelled(group=group, reason=token.reason or "cancelled"))
        self._console.warning(f"[{record.runner}] cancelled: {token.reason or 'cancelled'}")
        return True

    def _make_workdir(self, record: RunRecord) -> Path | None:
        root = self._options.work_root
        if self._options.dry_run:
            return (root or Path(tempfile.gettempdir())) / f"tagrel-{record.run_id}"
        try:
            if root is not None:
                root.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=f"tagrel-{record.run_id}-", dir=root))
        except OSError as e:
            record.fail(WorkdirFailed(path=root or Path(tempfile.gettempdir()), reason=str(e)))
            return None

    def _cleanup(self, workdir: Path) -> None:
        if self._options.dry_run:
            return
        if self._options.keep_workdir:
            self._console.print(f"work directory kept: {workdir}", Style.DIM)
            return
        shutil.rmtree(workdir, ignore_errors=True)
