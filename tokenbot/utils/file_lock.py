"""Lock file that keeps two bot processes off the same state file."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path

from ..exceptions import AlreadyRunningError


@dataclass
class FileLock:
    """Exclusive lock file holding the owner's PID.

    Acquisition fails immediately instead of waiting. Locks older than
    ``stale_seconds`` are treated as left behind by a crashed run and cleared.
    """

    path: str | Path
    stale_seconds: float = 24 * 3600.0
    _fd: int | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.stale_seconds <= 0:
            raise ValueError("stale_seconds must be positive")
        self.path = Path(self.path)

    # ------------------------------------------------------------------
    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                self._fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._is_stale():
                    self._clear()
                    continue
                raise AlreadyRunningError(
                    f"Another run holds {self.path} (pid {self._owner() or 'unknown'})"
                ) from None
            os.write(self._fd, str(os.getpid()).encode("utf-8"))
            return
        raise AlreadyRunningError(f"Unable to acquire {self.path}")

    def release(self) -> None:
        if self._fd is not None:
            try:
                os.close(self._fd)
            finally:
                self._fd = None
            self._clear()

    # ------------------------------------------------------------------
    def _owner(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8").strip() or None
        except OSError:
            return None

    def _is_stale(self) -> bool:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return True
        return time.time() - stat.st_mtime >= self.stale_seconds

    def _clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    # ------------------------------------------------------------------
    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


__all__ = ["FileLock"]
