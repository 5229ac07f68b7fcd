"""Shared helpers for CLI commands."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from tagrel.core.errors import ErrorCode
from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import Style
from tagrel.pipeline.model import TriggerEvent

if TYPE_CHECKING:
    from tagrel.cli.context import CLIContext

T = TypeVar("T")
E = TypeVar("E")


def exit_on_error(
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.USER_ERROR,
) -> T:
    """Return the value of an Ok, or print the error and exit.

    Expects error objects to have 'message' and optional 'hint' attributes;
    plain strings are printed as-is.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def resolve_events(
    refs: list[str] | None,
    *,
    repo: str | None,
    ctx: CLIContext,
) -> Result[list[TriggerEvent], str]:
    """Turn CLI refs into trigger events.

    Without refs, the event comes from the GitHub Actions environment.
    """
    env = os.environ
    if not refs:
        from_env = TriggerEvent.from_env(env)
        if isinstance(from_env, Err):
            return Err(f"no ref given and {from_env.error}")
        event = from_env.value
        if repo:
            event = TriggerEvent(ref=event.ref, repository=repo, sha=event.sha)
        return Ok([event])

    repository = repo or ctx.config.publish.repo or (env.get("GITHUB_REPOSITORY") or "").strip()
    if not repository:
        return Err("repository unknown: pass --repo OWNER/NAME or set [publish] repo")
    if repository.count("/") != 1:
        return Err(f"invalid repository: {repository} (expected OWNER/NAME)")

    env_ref = (env.get("GITHUB_REF") or "").strip()
    env_sha = (env.get("GITHUB_SHA") or "").strip() or None
    events: list[TriggerEvent] = []
    for ref in refs:
        if not ref.strip():
            return Err("empty ref")
        event = TriggerEvent.from_ref(ref, repository)
        # GITHUB_SHA only describes GITHUB_REF.
        if env_sha and event.ref == env_ref:
            event = TriggerEvent(ref=event.ref, repository=repository, sha=env_sha)
        events.append(event)
    return Ok(events)
