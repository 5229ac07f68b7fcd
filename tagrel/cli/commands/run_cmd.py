from __future__ import annotations

from pathlib import Path

import typer

from tagrel.cli.commands._helpers import exit_on_error, exit_with_code, resolve_events
from tagrel.cli.context import build_context
from tagrel.core.config import resolve_bin_name
from tagrel.core.errors import ErrorCode
from tagrel.output.console import ConsoleProtocol, Style
from tagrel.output.errors import pipeline_error_exit_code, print_pipeline_error
from tagrel.pipeline.dispatcher import DispatchOutcome, Dispatcher
from tagrel.pipeline.runner import ReleasePipeline, RunOptions


def _report(outcomes: list[DispatchOutcome], console: ConsoleProtocol) -> int:
    """Print one line per matrix entry and return the exit code of the first failure."""
    code = int(ErrorCode.OK)
    for outcome in outcomes:
        if not outcome.triggered:
            continue
        console.header(f"{outcome.event.ref} ({outcome.group})")
        for record in outcome.records:
            states = " -> ".join(str(s) for s in record.history)
            console.print(f"{record.runner} [{record.run_id}]: {states}", Style.DIM)
            if record.succeeded:
                console.success(f"{record.runner}: {record.asset_url}")
                continue
            if record.error is not None:
                print_pipeline_error(record.error, console)
                if code == int(ErrorCode.OK):
                    code = pipeline_error_exit_code(record.error)
    return code


def run(
    refs: list[str] | None = typer.Argument(
        None, help="Pushed ref(s), e.g. refs/tags/v1.2.0 or v1.2.0 (default: $GITHUB_REF)"
    ),
    repo: str | None = typer.Option(None, "--repo", help="Repository OWNER/NAME"),
    platform: list[str] | None = typer.Option(
        None, "--platform", "-p", help="Runner label(s), overrides the configured matrix"
    ),
    source: Path | None = typer.Option(
        None, "--source", help="Clone from this local checkout instead of GitHub"
    ),
    work_root: Path | None = typer.Option(None, "--work-root", help="Parent of run work directories"),
    keep_workdir: bool = typer.Option(False, "--keep-workdir", help="Keep the checkout after the run"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without executing them."),
) -> None:
    """Build and publish the release binary for pushed tag(s)."""
    ctx = build_context()
    config = ctx.config.with_platforms(tuple(platform or ()))

    events = exit_on_error(resolve_events(refs, repo=repo, ctx=ctx), ctx)
    bin_name = exit_on_error(resolve_bin_name(config), ctx)

    pipeline = ReleasePipeline(
        config=config,
        bin_name=bin_name,
        console=ctx.console,
        options=RunOptions(
            source=source,
            work_root=work_root,
            keep_workdir=keep_workdir,
            dry_run=dry_run,
        ),
    )
    dispatcher = Dispatcher(config=config, pipeline=pipeline, console=ctx.console)

    if len(events) == 1:
        outcomes = [dispatcher.dispatch(events[0])]
    else:
        outcomes = dispatcher.dispatch_all(events)

    exit_with_code(_report(outcomes, ctx.console))
