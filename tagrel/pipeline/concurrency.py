"""Concurrency groups with cancel-in-progress semantics.

Runs are keyed by `(workflow, ref)`. At most one run per key is active. A new
run for a key cancels the active run (when cancel_in_progress is set) and any
run still waiting for the key, then waits until the active run releases.

Entering the queue (`enqueue`) and waiting for the key (`wait`) are separate so
that a dispatcher can fix the order of runs before handing them to threads.
Cancellation is cooperative: the runner checks its token before each step.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

__all__ = ["CancellationToken", "ConcurrencyGate", "group_key"]


def group_key(workflow: str, ref: str) -> str:
    """Render the concurrency group name, e.g. "publish-refs/tags/v1.0.0"."""
    return f"{workflow}-{ref}"


class CancellationToken:
    """Whole-run cancellation flag shared by all steps of one run."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._lock = threading.Lock()

    def cancel(self, reason: str) -> None:
        with self._lock:
            # First reason wins.
            if self._reason is None:
                self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason


class ConcurrencyGate:
    """In-process registry of active runs per concurrency group."""

    def __init__(self, *, cancel_in_progress: bool = True) -> None:
        self.cancel_in_progress = cancel_in_progress
        self._cond = threading.Condition()
        self._active: dict[str, CancellationToken] = {}
        self._pending: dict[str, list[CancellationToken]] = {}

    def enqueue(self, key: str, token: CancellationToken) -> None:
        """Register token as the newest run of key, superseding older ones."""
        reason = f"superseded by a newer run in group {key}"
        with self._cond:
            holder = self._active.get(key)
            if holder is not None and self.cancel_in_progress:
                holder.cancel(reason)
            waiting = self._pending.setdefault(key, [])
            for older in waiting:
                older.cancel(reason)
            waiting.append(token)
            # Wake cancelled waiters so they can give up.
            self._cond.notify_all()

    def wait(self, key: str, token: CancellationToken) -> bool:
        """Block until an enqueued token owns key.

        Returns False if the token was cancelled before it got the key.
        """
        with self._cond:
            while self._active.get(key) is not None and not token.is_cancelled:
                self._cond.wait()

            waiting = self._pending.get(key, [])
            if token in waiting:
                waiting.remove(token)
            if not waiting:
                self._pending.pop(key, None)
            if token.is_cancelled:
                return False
            self._active[key] = token
            return True

    def acquire(self, key: str, token: CancellationToken) -> bool:
        self.enqueue(key, token)
        return self.wait(key, token)

    def release(self, key: str, token: CancellationToken) -> None:
        with self._cond:
            if self._active.get(key) is token:
                del self._active[key]
                self._cond.notify_all()

    def cancel(self, key: str, reason: str) -> bool:
        """Cancel the active run of a group (manual abort)."""
        with self._cond:
            holder = self._active.get(key)
            if holder is None:
                return False
            holder.cancel(reason)
            self._cond.notify_all()
            return True

    def active_keys(self) -> list[str]:
        with self._cond:
            return sorted(self._active)

    @contextmanager
    def hold(self, key: str, token: CancellationToken, *, enqueued: bool = False) -> Iterator[bool]:
        """Own key for the duration of a with-block.

        Yields whether the key was acquired; releases on exit either way.
        Pass enqueued=True when enqueue() was already called for token.
        """
        if not enqueued:
            self.enqueue(key, token)
        acquired = self.wait(key, token)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key, token)
