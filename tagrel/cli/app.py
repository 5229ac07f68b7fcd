from __future__ import annotations

import os
from pathlib import Path

import typer

from tagrel import __version__
from tagrel.cli.commands.match_cmd import match
from tagrel.cli.commands.plan_cmd import plan
from tagrel.cli.commands.run_cmd import run
from tagrel.cli.context import CONFIG_ENV
from tagrel.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(run)
app.command()(match)
app.command()(plan)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to tagrel.toml (default: ./tagrel.toml)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' does not exist", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        os.environ[CONFIG_ENV] = str(path.resolve())


def main() -> None:
    app()
