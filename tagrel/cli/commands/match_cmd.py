from __future__ import annotations

import typer

from tagrel.cli.commands._helpers import exit_with_code
from tagrel.cli.context import build_context
from tagrel.core.errors import ErrorCode
from tagrel.pipeline.model import TriggerEvent
from tagrel.pipeline.trigger import TagFilter


def match(
    ref: str = typer.Argument(..., help="Ref or tag name, e.g. v1.2.0"),
) -> None:
    """Exit 0 if a push of REF triggers the pipeline, 1 otherwise."""
    ctx = build_context()
    event = TriggerEvent.from_ref(ref, repository="")
    if TagFilter(ctx.config.tags).matches(event):
        ctx.console.success(f"{event.ref} triggers {ctx.config.workflow}")
        exit_with_code(int(ErrorCode.OK))
    ctx.console.print(f"{event.ref} does not match {', '.join(ctx.config.tags)}")
    exit_with_code(int(ErrorCode.USER_ERROR))
