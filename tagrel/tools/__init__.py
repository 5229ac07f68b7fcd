"""External build tools (git, rustup, cargo, gh)."""

from .base import CARGO, GH, GIT, RUSTUP, SystemTool

__all__ = ["CARGO", "GH", "GIT", "RUSTUP", "SystemTool"]
