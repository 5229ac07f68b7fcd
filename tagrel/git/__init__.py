"""Git operations."""

from .repository import GitError, Repository, clone_source

__all__ = ["GitError", "Repository", "clone_source"]
