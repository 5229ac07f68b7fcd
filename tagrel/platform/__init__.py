"""Platform abstraction layer."""

from .detection import Platform, detect_platform, platform_for_runner
from .process import ProcessError, run, run_silent

__all__ = [
    # detection
    "Platform",
    "detect_platform",
    "platform_for_runner",
    # process
    "ProcessError",
    "run",
    "run_silent",
]
