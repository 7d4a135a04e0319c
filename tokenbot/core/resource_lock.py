"""Non-blocking per-executor locks."""

from __future__ import annotations

from typing import Dict


class ResourceLockTable:
    """Busy flags keyed by executor index.

    Acquisition never blocks or queues; callers poll. The table lives in
    memory only, so every process start begins with all executors free.
    """

    def __init__(self) -> None:
        self._busy: Dict[int, bool] = {}

    def try_acquire(self, index: int) -> bool:
        if self._busy.get(index, False):
            return False
        self._busy[index] = True
        return True

    def release(self, index: int) -> None:
        self._busy[index] = False

    def is_locked(self, index: int) -> bool:
        return self._busy.get(index, False)


__all__ = ["ResourceLockTable"]
