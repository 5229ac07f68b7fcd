from __future__ import annotations

import json
from pathlib import Path
from time import sleep

from tagrel.core.result import Err, Ok, Result
from tagrel.core.structured import as_str_dict, get_str
from tagrel.output.console import ConsoleProtocol, Style
from tagrel.pipeline.model import Release
from tagrel.platform.process import ProcessError
from tagrel.platform.process import run as run_process
from tagrel.release.errors import ReleaseError, ReleaseErrorKind
from tagrel.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)
from tagrel.tools.base import GH

# contents: write
WRITE_PERMISSIONS = frozenset({"WRITE", "MAINTAIN", "ADMIN"})


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def _run_gh_read_raw(
    *,
    workspace_root: Path,
    cmd: list[str],
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ProcessError]:
    attempts = max(1, retry_attempts)
    result: Result[str, ProcessError] = Err(ProcessError(tuple(cmd), -1, "", "not run"))
    for attempt in range(attempts):
        result = run_process(cmd, cwd=workspace_root, timeout=timeout)
        if isinstance(result, Ok):
            return result
        if attempt < attempts - 1 and _is_transient_gh_error(result.error):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue
        return result
    return result


def run_gh_read(
    *,
    workspace_root: Path,
    cmd: list[str],
    kind: ReleaseErrorKind,
    message: str,
    hint: str | None = None,
) -> Result[str, ReleaseError]:
    """Run an idempotent gh command, retrying transient failures."""
    result = _run_gh_read_raw(workspace_root=workspace_root, cmd=cmd)
    if isinstance(result, Err):
        return Err(ReleaseError(kind=kind, message=message, hint=result.error.stderr.strip() or hint))
    return result


def ensure_gh_available() -> Result[None, ReleaseError]:
    if not GH.is_installed():
        return Err(ReleaseError(kind="gh_missing", message="gh: missing", hint=GH.install_hint))
    return Ok(None)


def ensure_gh_auth(*, workspace_root: Path) -> Result[None, ReleaseError]:
    result = run_process(["gh", "auth", "status"], cwd=workspace_root, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login (or set GH_TOKEN)",
            )
        )
    return Ok(None)


def viewer_permission(*, workspace_root: Path, repo: str) -> Result[str, ReleaseError]:
    result = run_gh_read(
        workspace_root=workspace_root,
        cmd=["gh", "repo", "view", repo, "--json", "viewerPermission"],
        kind="invalid_input",
        message=f"failed to query repo permission: {repo}",
        hint=repo,
    )
    if isinstance(result, Err):
        return result

    try:
        obj: object = json.loads(result.value)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="invalid_input", message=f"invalid JSON from gh repo view: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(ReleaseError(kind="invalid_input", message="unexpected payload from gh repo view"))

    perm = get_str(data, "viewerPermission")
    if perm is None:
        return Err(ReleaseError(kind="invalid_input", message="missing viewerPermission"))
    return Ok(perm)


def ensure_write_permission(*, workspace_root: Path, repo: str) -> Result[None, ReleaseError]:
    perm = viewer_permission(workspace_root=workspace_root, repo=repo)
    if isinstance(perm, Err):
        return perm
    if perm.value.upper() not in WRITE_PERMISSIONS:
        return Err(
            ReleaseError(
                kind="permission_denied",
                message=f"contents: write required on {repo} (have {perm.value})",
                hint="Grant write access to the token used by gh",
            )
        )
    return Ok(None)


def release_exists(*, workspace_root: Path, release: Release) -> Result[bool, ReleaseError]:
    result = _run_gh_read_raw(
        workspace_root=workspace_root,
        cmd=["gh", "release", "view", release.tag, "--repo", release.repo, "--json", "tagName"],
    )
    if isinstance(result, Ok):
        return Ok(True)
    if "not found" in result.error.stderr.lower():
        return Ok(False)
    return Err(
        ReleaseError(
            kind="release_failed",
            message=f"failed to look up release {release.tag} in {release.repo}",
            hint=result.error.stderr.strip() or None,
        )
    )


def create_release(*, workspace_root: Path, release: Release) -> Result[None, ReleaseError]:
    cmd = [
        "gh",
        "release",
        "create",
        release.tag,
        "--repo",
        release.repo,
        "--title",
        release.tag,
        "--notes",
        "",
        "--verify-tag",
    ]
    result = run_process(cmd, cwd=workspace_root, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        stderr = result.error.stderr.strip()
        # Another matrix entry created it first.
        if "already exists" in stderr.lower():
            return Ok(None)
        return Err(
            ReleaseError(
                kind="release_failed",
                message=f"failed to create release {release.tag}",
                hint=stderr or None,
            )
        )
    return Ok(None)


def upload_asset(*, workspace_root: Path, release: Release, path: Path) -> Result[str, ReleaseError]:
    """Attach path to the release, replacing an asset of the same name."""
    cmd = ["gh", "release", "upload", release.tag, str(path), "--repo", release.repo, "--clobber"]
    # Uploads are not retried.
    result = run_process(cmd, cwd=workspace_root)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="upload_failed",
                message=f"failed to upload {path.name} to {release.repo}@{release.tag}",
                hint=result.error.stderr.strip() or None,
            )
        )
    return Ok(release.asset_url(path.name))


def publish_asset(
    *,
    workspace_root: Path,
    release: Release,
    path: Path,
    console: ConsoleProtocol,
    dry_run: bool,
) -> Result[str, ReleaseError]:
    """Check access, make sure the release exists, then upload the asset.

    Returns the download URL of the asset.
    """
    console.print(f"gh release upload {release.tag} {path.name} --repo {release.repo}", Style.DIM)
    if dry_run:
        return Ok(release.asset_url(path.name))

    if not path.is_file():
        return Err(ReleaseError(kind="invalid_input", message=f"artifact not found: {path}"))

    available = ensure_gh_available()
    if isinstance(available, Err):
        return available

    auth = ensure_gh_auth(workspace_root=workspace_root)
    if isinstance(auth, Err):
        return auth

    permitted = ensure_write_permission(workspace_root=workspace_root, repo=release.repo)
    if isinstance(permitted, Err):
        return permitted

    exists = release_exists(workspace_root=workspace_root, release=release)
    if isinstance(exists, Err):
        return exists
    if not exists.value:
        console.print(f"creating release {release.tag}", Style.DIM)
        created = create_release(workspace_root=workspace_root, release=release)
        if isinstance(created, Err):
            return created

    return upload_asset(workspace_root=workspace_root, release=release, path=path)
