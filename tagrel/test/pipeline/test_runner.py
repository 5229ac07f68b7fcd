"""Tests for tagrel.pipeline.runner module."""

from __future__ import annotations

from pathlib import Path

import pytest

from tagrel.core.config import BuildConfig, Config, PublishConfig
from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import MockConsole
from tagrel.pipeline import runner as runner_mod
from tagrel.pipeline.concurrency import CancellationToken
from tagrel.pipeline.errors import (
    Cancelled,
    CompileFailed,
    PublishFailed,
    RunnerUnavailable,
    ToolchainInstallFailed,
)
from tagrel.pipeline.model import Release, RunState, TriggerEvent
from tagrel.pipeline.runner import ReleasePipeline, RunOptions
from tagrel.platform.detection import Platform
from tagrel.release.errors import ReleaseError
from tagrel.tools import base as tools_base

SHA = "0123456789abcdef0123456789abcdef01234567"


class _FakeRepo:
    def __init__(self, path: Path) -> None:
        self.path = path

    def head_sha(self) -> Ok[str]:
        return Ok(SHA)


class Fakes:
    """Stand-ins for git, rustup, cargo and gh, recording every call."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.install_result: Result[None, object] = Ok(None)
        self.build_error: object | None = None
        self.publish_error: ReleaseError | None = None
        self.on_install = lambda: None
        self.published: list[tuple[Release, Path]] = []
        self.checkouts: list[Path] = []

    def clone_source(self, url: str, dest: Path, *, ref: str, depth: int, submodules: bool):
        self.calls.append("checkout")
        assert submodules is False
        assert depth == 1
        dest.mkdir(parents=True)
        self.checkouts.append(dest)
        return Ok(_FakeRepo(dest))

    def install_toolchain(self, *, channel: str, profile: str, cwd: Path, console, dry_run: bool):
        self.calls.append(f"toolchain:{channel}")
        self.on_install()
        return self.install_result

    def build_release(self, *, checkout: Path, channel: str, build, expected: Path, console, dry_run: bool):
        self.calls.append("build")
        if self.build_error is not None:
            return Err(self.build_error)
        return Ok(expected)

    def publish_asset(self, *, workspace_root: Path, release: Release, path: Path, console, dry_run: bool):
        self.calls.append("publish")
        if self.publish_error is not None:
            return Err(self.publish_error)
        self.published.append((release, path))
        return Ok(release.asset_url(path.name))


@pytest.fixture
def fakes(monkeypatch: pytest.MonkeyPatch) -> Fakes:
    f = Fakes()
    monkeypatch.setattr(runner_mod, "clone_source", f.clone_source)
    monkeypatch.setattr(runner_mod, "install_toolchain", f.install_toolchain)
    monkeypatch.setattr(runner_mod, "build_release", f.build_release)
    monkeypatch.setattr(runner_mod, "publish_asset", f.publish_asset)
    monkeypatch.setattr(tools_base.shutil, "which", lambda name: f"/usr/bin/{name}")
    return f


def _pipeline(
    tmp_path: Path,
    *,
    config: Config | None = None,
    host: Platform = Platform.WINDOWS,
    console: MockConsole | None = None,
    **options: object,
) -> ReleasePipeline:
    return ReleasePipeline(
        config=config or Config(),
        bin_name="app",
        console=console or MockConsole(),
        options=RunOptions(work_root=tmp_path / "work", **options),  # type: ignore[arg-type]
        host=host,
    )


def _event(ref: str = "refs/tags/v1.0.0") -> TriggerEvent:
    return TriggerEvent.from_ref(ref, "owner/proxy")


def _run(pipeline: ReleasePipeline, runner: str = "windows-latest", token: CancellationToken | None = None):
    record = pipeline.start(_event(), runner)
    return pipeline.run(record, token or CancellationToken())


def test_successful_run_publishes_exe(tmp_path: Path, fakes: Fakes) -> None:
    record = _run(_pipeline(tmp_path))

    assert record.state == RunState.PUBLISHED
    assert record.history == [
        RunState.IDLE,
        RunState.TRIGGERED,
        RunState.GATED,
        RunState.CHECKED_OUT,
        RunState.TOOLCHAIN_READY,
        RunState.BUILT,
        RunState.PUBLISHED,
    ]
    assert fakes.calls == ["checkout", "toolchain:stable", "build", "publish"]
    assert record.artifact is not None
    assert record.artifact.path.name == "app.exe"
    assert record.artifact.path.parent.parts[-2:] == ("target", "release")
    release, path = fakes.published[0]
    assert release == Release(repo="owner/proxy", tag="v1.0.0")
    assert path == record.artifact.path
    assert record.asset_url == "https://github.com/owner/proxy/releases/download/v1.0.0/app.exe"


def test_workdir_removed_after_run(tmp_path: Path, fakes: Fakes) -> None:
    _run(_pipeline(tmp_path))

    assert fakes.checkouts
    assert not fakes.checkouts[0].exists()
    assert list((tmp_path / "work").iterdir()) == []


def test_keep_workdir(tmp_path: Path, fakes: Fakes) -> None:
    _run(_pipeline(tmp_path, keep_workdir=True))
    assert fakes.checkouts[0].exists()


def test_build_failure_skips_publish(tmp_path: Path, fakes: Fakes) -> None:
    fakes.build_error = CompileFailed(returncode=101)

    record = _run(_pipeline(tmp_path))

    assert record.state == RunState.FAILED
    assert record.error == CompileFailed(returncode=101)
    assert "publish" not in fakes.calls
    assert record.history[-2:] == [RunState.TOOLCHAIN_READY, RunState.FAILED]


def test_toolchain_failure_skips_build(tmp_path: Path, fakes: Fakes) -> None:
    fakes.install_result = Err(ToolchainInstallFailed(channel="stable", returncode=1))

    record = _run(_pipeline(tmp_path))

    assert record.state == RunState.FAILED
    assert isinstance(record.error, ToolchainInstallFailed)
    assert fakes.calls == ["checkout", "toolchain:stable"]


def test_publish_permission_failure(tmp_path: Path, fakes: Fakes) -> None:
    fakes.publish_error = ReleaseError(kind="permission_denied", message="contents: write required")

    record = _run(_pipeline(tmp_path))

    assert record.state == RunState.FAILED
    assert record.error == PublishFailed(kind="permission_denied", message="contents: write required")
    assert fakes.published == []
    assert record.asset_url is None


def test_cancelled_between_steps(tmp_path: Path, fakes: Fakes) -> None:
    token = CancellationToken()
    fakes.on_install = lambda: token.cancel("superseded by a newer run")

    record = _run(_pipeline(tmp_path), token=token)

    assert record.state == RunState.CANCELLED
    assert record.error == Cancelled(
        group="publish-refs/tags/v1.0.0", reason="superseded by a newer run"
    )
    assert "build" not in fakes.calls
    assert RunState.TOOLCHAIN_READY in record.history


def test_cancelled_before_gate(tmp_path: Path, fakes: Fakes) -> None:
    token = CancellationToken()
    token.cancel("manual abort")

    record = _run(_pipeline(tmp_path), token=token)

    assert record.history == [RunState.IDLE, RunState.TRIGGERED, RunState.CANCELLED]
    assert fakes.calls == []


def test_runner_unavailable_on_other_host(tmp_path: Path, fakes: Fakes) -> None:
    record = _run(_pipeline(tmp_path, host=Platform.LINUX))

    assert record.state == RunState.FAILED
    assert record.error == RunnerUnavailable(runner="windows-latest", host="linux")
    assert fakes.calls == []


def test_linux_runner_has_no_suffix(tmp_path: Path, fakes: Fakes) -> None:
    record = _run(_pipeline(tmp_path, host=Platform.LINUX), runner="ubuntu-latest")

    assert record.succeeded
    assert record.artifact is not None
    assert record.artifact.path.name == "app"


def test_publish_repo_override(tmp_path: Path, fakes: Fakes) -> None:
    config = Config(publish=PublishConfig(repo="owner/releases"))

    _run(_pipeline(tmp_path, config=config))

    assert fakes.published[0][0].repo == "owner/releases"


def test_custom_profile_output_dir(tmp_path: Path, fakes: Fakes) -> None:
    config = Config(build=BuildConfig(profile="dist"))

    record = _run(_pipeline(tmp_path, config=config))

    assert record.artifact is not None
    assert record.artifact.path.parent.name == "dist"


def test_dev_profile_artifact_in_debug_dir(tmp_path: Path, fakes: Fakes) -> None:
    config = Config(build=BuildConfig(profile="dev"))

    record = _run(_pipeline(tmp_path, config=config))

    assert record.state == RunState.PUBLISHED
    assert record.artifact is not None
    assert record.artifact.path.parent.parts[-2:] == ("target", "debug")


def test_checkout_echoes_clone_command(tmp_path: Path, fakes: Fakes) -> None:
    console = MockConsole()

    _run(_pipeline(tmp_path, console=console))

    echoed = console.find("git clone --branch v1.0.0 --single-branch --depth 1 --no-recurse-submodules")
    assert len(echoed) == 1
    assert echoed[0].message.endswith(str(fakes.checkouts[0]))


def test_rerun_after_failure_is_independent(tmp_path: Path, fakes: Fakes) -> None:
    pipeline = _pipeline(tmp_path)
    fakes.build_error = CompileFailed(returncode=101)
    first = _run(pipeline)

    fakes.build_error = None
    second = _run(pipeline)

    assert first.state == RunState.FAILED
    assert second.state == RunState.PUBLISHED
    assert second.run_id != first.run_id
    assert second.error is None


def test_dry_run_executes_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def no_clone(*args: object, **kwargs: object) -> None:
        raise AssertionError("dry run must not clone")

    monkeypatch.setattr(runner_mod, "clone_source", no_clone)
    console = MockConsole()

    record = _run(_pipeline(tmp_path, host=Platform.LINUX, console=console, dry_run=True))

    assert record.state == RunState.PUBLISHED
    assert console.find(
        "git clone --branch v1.0.0 --single-branch --depth 1 --no-recurse-submodules "
        "https://github.com/owner/proxy.git"
    )
    assert console.find("rustup toolchain install stable")
    assert console.find("cargo +stable build --verbose --release")
    assert console.find("gh release upload v1.0.0 app.exe --repo owner/proxy")
    assert not (tmp_path / "work").exists()
