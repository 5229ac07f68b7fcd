from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from tagrel.core.config import DEFAULT_CONFIG_FILENAME, Config, load_config_or_default
from tagrel.core.errors import ErrorCode
from tagrel.core.result import Err
from tagrel.output.console import ConsoleProtocol, RichConsole, Style

CONFIG_ENV = "TAGREL_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    config_path: Path
    console: ConsoleProtocol


def config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return Path.cwd() / DEFAULT_CONFIG_FILENAME


def build_context() -> CLIContext:
    console = RichConsole()
    path = config_path()
    result = load_config_or_default(path)
    if isinstance(result, Err):
        console.error(result.error.message)
        if result.error.hint:
            console.print(f"hint: {result.error.hint}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(config=result.value, config_path=path, console=console)
