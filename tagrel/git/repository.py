"""Git checkout of the triggering ref.

The pipeline only needs a scoped working copy of one ref: a shallow clone of
the tag, without submodules, into a directory the run owns.

Usage:
    match clone_source(url, dest, ref="refs/tags/v1.0.0", depth=1, submodules=False):
        case Ok(repo):
            print(repo.head_sha())
        case Err(e):
            print(f"checkout failed: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from tagrel.core.result import Err, Ok, Result
from tagrel.platform.process import ProcessError
from tagrel.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0

__all__ = [
    "GitError",
    "Repository",
    "clone_command",
    "clone_source",
    "clone_url",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def clone_url(repo: str, source: Path | None = None) -> str:
    """URL to clone from: a local checkout if given, else the hosted repo."""
    if source is not None:
        # file:// so that --depth is honoured for local clones.
        return source.expanduser().resolve().as_uri()
    return f"https://github.com/{repo}.git"


def _short_ref(ref: str) -> str:
    for prefix in ("refs/tags/", "refs/heads/"):
        if ref.startswith(prefix):
            return ref[len(prefix) :]
    return ref


def clone_command(
    url: str,
    dest: Path,
    *,
    ref: str,
    depth: int,
    submodules: bool,
) -> list[str]:
    cmd = ["git", "clone", "--branch", _short_ref(ref), "--single-branch"]
    if depth > 0:
        cmd += ["--depth", str(depth)]
    cmd.append("--recurse-submodules" if submodules else "--no-recurse-submodules")
    cmd += [url, str(dest)]
    return cmd


def clone_source(
    url: str,
    dest: Path,
    *,
    ref: str,
    depth: int = 1,
    submodules: bool = False,
) -> Result[Repository, GitError]:
    """Clone ref from url into dest (which must not exist or be empty)."""
    cmd = clone_command(url, dest, ref=ref, depth=depth, submodules=submodules)
    # Network-bound; no timeout, the run is cancelled as a whole instead.
    result = run_process(cmd, cwd=dest.parent)
    if isinstance(result, Err):
        e = result.error
        return Err(
            GitError(
                command="clone",
                message=e.stderr.strip() or f"git clone failed: {url}",
                returncode=e.returncode,
            )
        )
    return Ok(Repository(dest))


class Repository:
    """A local working copy.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a valid git repository (.git dir or gitfile)."""
        return (self.path / ".git").exists()

    def head_sha(self) -> Result[str, GitError]:
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command="rev-parse HEAD",
                        message=e.stderr.strip() or "rev-parse failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(stdout):
                return Ok(stdout.strip())

    def has_submodules_checked_out(self) -> bool:
        """True if any submodule is initialized in this working copy."""
        result = self._run(["submodule", "status"])
        match result:
            case Ok(stdout):
                # Uninitialized submodules are listed with a leading "-".
                return any(ln and not ln.startswith("-") for ln in stdout.splitlines())
            case Err(_):
                return False

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        return run_process(
            ["git", "-C", str(self.path), *args], cwd=self.path, timeout=_GIT_TIMEOUT_SECONDS
        )
