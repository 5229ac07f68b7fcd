"""System tools the pipeline shells out to.

None of these are downloaded by tagrel; they must already be on PATH, the
same way a hosted runner image provides them.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

__all__ = ["SystemTool", "CARGO", "GH", "GIT", "RUSTUP"]


@dataclass(frozen=True, slots=True)
class SystemTool:
    """A tool found via PATH.

    Attributes:
        id: Executable name (e.g., "cargo")
        name: Human-readable name
        install_hint: Shown when the tool is missing
    """

    id: str
    name: str
    install_hint: str

    def __post_init__(self) -> None:
        if not self.id or not self.id.islower():
            raise ValueError(f"Tool id must be a lowercase executable name: {self.id!r}")

    def system_path(self) -> Path | None:
        found = shutil.which(self.id)
        return Path(found) if found else None

    def is_installed(self) -> bool:
        return self.system_path() is not None


GIT = SystemTool(id="git", name="Git", install_hint="Install Git: https://git-scm.com/downloads")
RUSTUP = SystemTool(id="rustup", name="rustup", install_hint="Install Rust via https://rustup.rs/")
CARGO = SystemTool(id="cargo", name="Cargo (Rust)", install_hint="Install Rust via https://rustup.rs/")
GH = SystemTool(id="gh", name="GitHub CLI", install_hint="Install GitHub CLI: https://cli.github.com/")
