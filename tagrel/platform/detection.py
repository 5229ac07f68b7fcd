"""Platform detection and runner label mapping.

A matrix entry is a runner label such as `windows-latest` or `ubuntu-22.04`.
The label decides the executable suffix of the built artifact, and whether the
local host can stand in for that runner.
"""

from __future__ import annotations

import sys as _sys
from enum import Enum, auto
from functools import lru_cache

__all__ = [
    "Platform",
    "detect_platform",
    "platform_for_runner",
]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def exe_suffix(self) -> str:
        """Executable file suffix for this platform."""
        return ".exe" if self == Platform.WINDOWS else ""

    def exe_name(self, name: str) -> str:
        """Executable name with platform-appropriate suffix.

        Example: exe_name("proxy") -> "proxy.exe" on Windows, "proxy" elsewhere.
        """
        return f"{name}{self.exe_suffix}"


_RUNNER_PREFIXES: tuple[tuple[str, Platform], ...] = (
    ("windows", Platform.WINDOWS),
    ("ubuntu", Platform.LINUX),
    ("linux", Platform.LINUX),
    ("macos", Platform.MACOS),
)


def platform_for_runner(label: str) -> Platform:
    """Map a runner label to its platform.

    Example: platform_for_runner("windows-2022") -> Platform.WINDOWS
    """
    s = label.strip().lower()
    for prefix, platform in _RUNNER_PREFIXES:
        if s == prefix or s.startswith(prefix + "-"):
            return platform
    return Platform.UNKNOWN


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system (cached)."""
    # NOTE: avoid platform.system() on Windows, it may query WMI.
    system = _sys.platform.lower()
    if system.startswith("linux"):
        return Platform.LINUX
    if system.startswith("darwin"):
        return Platform.MACOS
    if system.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    return Platform.UNKNOWN
