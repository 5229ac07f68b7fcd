"""Tests for tagrel.pipeline.dispatcher module."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from tagrel.core.config import Config
from tagrel.core.result import Err, Ok
from tagrel.output.console import MockConsole
from tagrel.pipeline import runner as runner_mod
from tagrel.pipeline.concurrency import CancellationToken
from tagrel.pipeline.dispatcher import Dispatcher
from tagrel.pipeline.errors import Cancelled, CompileFailed, RunnerUnavailable
from tagrel.pipeline.model import RunState, TriggerEvent
from tagrel.pipeline.runner import ReleasePipeline, RunOptions
from tagrel.platform.detection import Platform
from tagrel.tools import base as tools_base


class _FakeRepo:
    def head_sha(self) -> Ok[str]:
        return Ok("f" * 40)


class Recorder:
    """Fake collaborators that log which step ran for which tag."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.lock = threading.Lock()
        self.fail_builds = False
        self.build_hook = lambda: None

    def _log(self, entry: str) -> None:
        with self.lock:
            self.calls.append(entry)

    def clone_source(self, url: str, dest: Path, *, ref: str, depth: int, submodules: bool):
        self._log(f"checkout:{ref}")
        dest.mkdir(parents=True)
        return Ok(_FakeRepo())

    def install_toolchain(self, **kwargs: object):
        return Ok(None)

    def build_release(self, *, checkout: Path, expected: Path, **kwargs: object):
        self._log("build")
        self.build_hook()
        if self.fail_builds:
            return Err(CompileFailed(returncode=101))
        return Ok(expected)

    def publish_asset(self, *, release, path: Path, **kwargs: object):
        self._log(f"publish:{release.tag}")
        return Ok(release.asset_url(path.name))

    def steps(self, prefix: str) -> list[str]:
        return [c for c in self.calls if c.startswith(prefix)]


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    rec = Recorder()
    monkeypatch.setattr(runner_mod, "clone_source", rec.clone_source)
    monkeypatch.setattr(runner_mod, "install_toolchain", rec.install_toolchain)
    monkeypatch.setattr(runner_mod, "build_release", rec.build_release)
    monkeypatch.setattr(runner_mod, "publish_asset", rec.publish_asset)
    monkeypatch.setattr(tools_base.shutil, "which", lambda name: f"/usr/bin/{name}")
    return rec


def _dispatcher(tmp_path: Path, config: Config | None = None) -> Dispatcher:
    config = config or Config()
    console = MockConsole()
    pipeline = ReleasePipeline(
        config=config,
        bin_name="app",
        console=console,
        options=RunOptions(work_root=tmp_path),
        host=Platform.WINDOWS,
    )
    return Dispatcher(config=config, pipeline=pipeline, console=console)


def _event(ref: str) -> TriggerEvent:
    return TriggerEvent.from_ref(ref, "owner/proxy")


@pytest.mark.parametrize("ref", ["refs/heads/main", "refs/tags/release-1", "refs/tags/1.0.0"])
def test_non_matching_ref_does_not_run(tmp_path: Path, recorder: Recorder, ref: str) -> None:
    outcome = _dispatcher(tmp_path).dispatch(_event(ref))

    assert not outcome.triggered
    assert outcome.records == ()
    assert recorder.calls == []


def test_matching_ref_publishes(tmp_path: Path, recorder: Recorder) -> None:
    outcome = _dispatcher(tmp_path).dispatch(_event("v1.2.0"))

    assert outcome.triggered
    assert outcome.group == "publish-refs/tags/v1.2.0"
    assert outcome.succeeded
    assert recorder.steps("publish") == ["publish:v1.2.0"]


def test_gate_released_after_run(tmp_path: Path, recorder: Recorder) -> None:
    dispatcher = _dispatcher(tmp_path)
    dispatcher.dispatch(_event("v1.2.0"))
    assert dispatcher.gate.active_keys() == []


def test_matrix_entries_are_independent(tmp_path: Path, recorder: Recorder) -> None:
    config = Config(platforms=("ubuntu-latest", "windows-latest"))

    outcome = _dispatcher(tmp_path, config).dispatch(_event("v1.2.0"))

    first, second = outcome.records
    assert first.state == RunState.FAILED
    assert isinstance(first.error, RunnerUnavailable)
    assert second.state == RunState.PUBLISHED
    assert not outcome.succeeded


def test_fail_fast_cancels_remaining_entries(tmp_path: Path, recorder: Recorder) -> None:
    config = Config(platforms=("ubuntu-latest", "windows-latest"), fail_fast=True)

    outcome = _dispatcher(tmp_path, config).dispatch(_event("v1.2.0"))

    first, second = outcome.records
    assert first.state == RunState.FAILED
    assert second.state == RunState.CANCELLED
    assert second.error == Cancelled(
        group="publish-refs/tags/v1.2.0", reason="fail-fast: ubuntu-latest failed"
    )
    assert recorder.calls == []


def test_same_ref_pushes_collapse_to_newest(tmp_path: Path, recorder: Recorder) -> None:
    dispatcher = _dispatcher(tmp_path)

    older, newer = dispatcher.dispatch_all([_event("v1.2.0"), _event("v1.2.0")])

    assert older.cancelled
    assert older.records[0].history == [RunState.IDLE, RunState.TRIGGERED, RunState.CANCELLED]
    assert newer.succeeded
    assert recorder.steps("publish") == ["publish:v1.2.0"]


def test_different_refs_run_independently(tmp_path: Path, recorder: Recorder) -> None:
    outcomes = _dispatcher(tmp_path).dispatch_all(
        [_event("v1.2.0"), _event("v1.3.0"), _event("refs/heads/main")]
    )

    assert [o.triggered for o in outcomes] == [True, True, False]
    assert outcomes[0].succeeded
    assert outcomes[1].succeeded
    assert sorted(recorder.steps("publish")) == ["publish:v1.2.0", "publish:v1.3.0"]


def test_newer_push_cancels_in_flight_run(tmp_path: Path, recorder: Recorder) -> None:
    dispatcher = _dispatcher(tmp_path)
    building = threading.Event()
    proceed = threading.Event()
    builds = []

    def hold_first_build() -> None:
        builds.append(1)
        if len(builds) == 1:
            building.set()
            proceed.wait(timeout=5.0)

    recorder.build_hook = hold_first_build
    old_token = CancellationToken()
    results = {}

    def push_old() -> None:
        results["old"] = dispatcher.dispatch(_event("v1.2.0"), old_token)

    def push_new() -> None:
        results["new"] = dispatcher.dispatch(_event("v1.2.0"))

    old_thread = threading.Thread(target=push_old)
    old_thread.start()
    assert building.wait(timeout=5.0)

    new_thread = threading.Thread(target=push_new)
    new_thread.start()
    deadline = time.monotonic() + 5.0
    while not old_token.is_cancelled and time.monotonic() < deadline:
        time.sleep(0.01)
    proceed.set()

    old_thread.join(timeout=5.0)
    new_thread.join(timeout=5.0)

    old = results["old"].records[0]
    assert old.state == RunState.CANCELLED
    # Cancellation lands at the next step boundary, after the build finished.
    assert old.history[-2:] == [RunState.BUILT, RunState.CANCELLED]
    assert results["new"].succeeded
    assert recorder.steps("publish") == ["publish:v1.2.0"]


def test_rerun_after_failure(tmp_path: Path, recorder: Recorder) -> None:
    dispatcher = _dispatcher(tmp_path)
    recorder.fail_builds = True
    failed = dispatcher.dispatch(_event("v1.2.0"))

    recorder.fail_builds = False
    rerun = dispatcher.dispatch(_event("v1.2.0"))

    assert failed.records[0].state == RunState.FAILED
    assert recorder.steps("publish") == ["publish:v1.2.0"]
    assert rerun.succeeded


def test_cancel_in_progress_disabled_waits_for_holder(tmp_path: Path, recorder: Recorder) -> None:
    dispatcher = _dispatcher(tmp_path, Config(cancel_in_progress=False))
    building = threading.Event()
    proceed = threading.Event()
    builds = []

    def hold_first_build() -> None:
        builds.append(1)
        if len(builds) == 1:
            building.set()
            proceed.wait(timeout=5.0)

    recorder.build_hook = hold_first_build
    old_token = CancellationToken()
    results = {}

    old_thread = threading.Thread(
        target=lambda: results.setdefault("old", dispatcher.dispatch(_event("v1.2.0"), old_token))
    )
    old_thread.start()
    assert building.wait(timeout=5.0)
    new_thread = threading.Thread(
        target=lambda: results.setdefault("new", dispatcher.dispatch(_event("v1.2.0")))
    )
    new_thread.start()
    time.sleep(0.05)
    proceed.set()

    old_thread.join(timeout=5.0)
    new_thread.join(timeout=5.0)

    assert not old_token.is_cancelled
    assert results["old"].succeeded
    assert results["new"].succeeded
    assert recorder.steps("publish") == ["publish:v1.2.0", "publish:v1.2.0"]
