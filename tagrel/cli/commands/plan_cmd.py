from __future__ import annotations

from pathlib import Path

import typer

from tagrel.cli.context import build_context
from tagrel.core.config import resolve_bin_name
from tagrel.git.repository import clone_command, clone_url
from tagrel.output.console import Style
from tagrel.pipeline.concurrency import group_key
from tagrel.pipeline.model import normalize_ref
from tagrel.platform.detection import platform_for_runner
from tagrel.tools.cargo import artifact_path, build_command
from tagrel.tools.rustup import install_command


def plan(
    ref: str = typer.Argument("v0.0.0", help="Ref to plan for"),
    repo: str = typer.Option("OWNER/NAME", "--repo", help="Repository OWNER/NAME"),
) -> None:
    """Show the steps a push of REF would run."""
    ctx = build_context()
    config = ctx.config
    full_ref = normalize_ref(ref)
    bin_name = resolve_bin_name(config).unwrap_or("<BIN_NAME>")
    checkout = Path("<workdir>/src")

    ctx.console.header(f"{config.workflow}: on push tags {', '.join(config.tags)}")
    ctx.console.print(f"config: {ctx.config_path}", Style.DIM)
    ctx.console.print(f"concurrency group: {group_key(config.workflow, full_ref)}")
    ctx.console.print(f"cancel in progress: {str(config.cancel_in_progress).lower()}")
    ctx.console.print(f"fail fast: {str(config.fail_fast).lower()}")
    ctx.console.print("permissions: contents: write")

    steps = [
        " ".join(
            clone_command(
                clone_url(config.publish.repo or repo),
                checkout,
                ref=full_ref,
                depth=config.checkout.depth,
                submodules=config.checkout.submodules,
            )
        ),
        " ".join(install_command(config.toolchain.channel, config.toolchain.profile)),
        " ".join(build_command(config.toolchain.channel, config.build)),
    ]
    for runner in config.platforms:
        ctx.console.header(runner)
        for index, step in enumerate(steps, start=1):
            ctx.console.print(f"{index}. {step}")
        artifact = artifact_path(checkout, config.build, bin_name, platform_for_runner(runner))
        ctx.console.print(f"{len(steps) + 1}. upload {artifact}")
