"""Typed configuration loading and access.

The pipeline reads `tagrel.toml` from the project root. Every key has a
default, so a project without a config file builds `BIN_NAME` for
`windows-latest` whenever a `v*` tag is pushed.

Example:
    workflow = "publish"
    tags = ["v*"]
    bin_name = "proxy"
    platforms = ["windows-latest"]

    [toolchain]
    channel = "stable"

    [publish]
    repo = "owner/proxy"
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .patterns import validate_patterns
from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_str, get_str_list, get_table

__all__ = [
    "BIN_NAME_ENV",
    "DEFAULT_CONFIG_FILENAME",
    "BuildConfig",
    "CheckoutConfig",
    "Config",
    "ConfigError",
    "PublishConfig",
    "ToolchainConfig",
    "load_config",
    "load_config_or_default",
    "resolve_bin_name",
]

DEFAULT_CONFIG_FILENAME = "tagrel.toml"
BIN_NAME_ENV = "BIN_NAME"

DEFAULT_WORKFLOW = "publish"
DEFAULT_TAG_PATTERNS = ("v*",)
DEFAULT_PLATFORMS = ("windows-latest",)

# Built-in cargo profiles that do not write to target/<profile>.
_PROFILE_DIRS = {"dev": "debug", "test": "debug", "bench": "release"}


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Config cannot be loaded, parsed or is incomplete."""

    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class ToolchainConfig:
    channel: str = "stable"
    profile: str = "minimal"


@dataclass(frozen=True, slots=True)
class CheckoutConfig:
    """How the source is checked out.

    depth=0 means a full clone.
    """

    submodules: bool = False
    depth: int = 1


@dataclass(frozen=True, slots=True)
class BuildConfig:
    profile: str = "release"
    verbose: bool = True

    @property
    def output_dir(self) -> str:
        """Cargo output directory relative to the checkout.

        Example: BuildConfig(profile="dev").output_dir -> "target/debug"
        """
        return f"target/{_PROFILE_DIRS.get(self.profile, self.profile)}"


@dataclass(frozen=True, slots=True)
class PublishConfig:
    """Release upload settings.

    repo defaults to the repository of the trigger event.
    """

    repo: str | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    workflow: str = DEFAULT_WORKFLOW
    tags: tuple[str, ...] = DEFAULT_TAG_PATTERNS
    bin_name: str | None = None
    platforms: tuple[str, ...] = DEFAULT_PLATFORMS
    fail_fast: bool = False
    cancel_in_progress: bool = True
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    checkout: CheckoutConfig = field(default_factory=CheckoutConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: when a list is present but empty or malformed, or a
                tag pattern does not compile.
        """
        toolchain: StrDict = get_table(data, "toolchain") or {}
        checkout: StrDict = get_table(data, "checkout") or {}
        build: StrDict = get_table(data, "build") or {}
        publish: StrDict = get_table(data, "publish") or {}

        tags = _str_tuple(data, "tags", DEFAULT_TAG_PATTERNS)
        validate_patterns(tags)
        platforms = _str_tuple(data, "platforms", DEFAULT_PLATFORMS)

        depth = get_int(checkout, "depth")
        if depth is not None and depth < 0:
            raise ValueError("checkout.depth must be >= 0")

        verbose = get_bool(build, "verbose")
        fail_fast = get_bool(data, "fail_fast")
        cancel_in_progress = get_bool(data, "cancel_in_progress")
        submodules = get_bool(checkout, "submodules")

        return cls(
            workflow=get_str(data, "workflow") or DEFAULT_WORKFLOW,
            tags=tags,
            bin_name=get_str(data, "bin_name"),
            platforms=platforms,
            fail_fast=fail_fast if fail_fast is not None else False,
            cancel_in_progress=cancel_in_progress if cancel_in_progress is not None else True,
            toolchain=ToolchainConfig(
                channel=get_str(toolchain, "channel") or "stable",
                profile=get_str(toolchain, "profile") or "minimal",
            ),
            checkout=CheckoutConfig(
                submodules=submodules if submodules is not None else False,
                depth=depth if depth is not None else 1,
            ),
            build=BuildConfig(
                profile=get_str(build, "profile") or "release",
                verbose=verbose if verbose is not None else True,
            ),
            publish=PublishConfig(repo=get_str(publish, "repo")),
        )

    def with_platforms(self, platforms: tuple[str, ...]) -> Config:
        """Return a copy running on the given matrix entries instead."""
        if not platforms:
            return self
        return replace(self, platforms=platforms)


def _str_tuple(data: Mapping[str, object], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    if key not in data:
        return default
    values = get_str_list(data, key)
    if not values:
        raise ValueError(f"{key} must be a non-empty list of strings")
    return tuple(values)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to tagrel.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, otherwise return the defaults.

    A file that exists but is invalid is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)


def resolve_bin_name(
    config: Config, env: Mapping[str, str] | None = None
) -> Result[str, ConfigError]:
    """Resolve the binary name: BIN_NAME from the environment wins over config."""
    environ = os.environ if env is None else env
    from_env = (environ.get(BIN_NAME_ENV) or "").strip()
    name = from_env or config.bin_name
    if not name:
        return Err(
            ConfigError(
                "binary name is not set",
                hint=f"Set {BIN_NAME_ENV} or bin_name in {DEFAULT_CONFIG_FILENAME}",
            )
        )
    if "/" in name or "\\" in name:
        return Err(ConfigError(f"invalid binary name: {name}", hint="Use the bare name, no path"))
    if name.lower().endswith(".exe"):
        return Err(ConfigError(f"invalid binary name: {name}", hint="Omit the .exe extension"))
    return Ok(name)
