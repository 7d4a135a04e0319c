from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from tokenbot.exceptions import AlreadyRunningError
from tokenbot.utils import FileLock


def test_lock_writes_pid_and_cleans_up(tmp_path: Path) -> None:
    path = tmp_path / "data" / ".run.lock"

    with FileLock(path):
        assert path.read_text(encoding="utf-8") == str(os.getpid())

    assert not path.exists()


def test_second_holder_fails_fast(tmp_path: Path) -> None:
    path = tmp_path / ".run.lock"
    first = FileLock(path)
    first.acquire()
    try:
        with pytest.raises(AlreadyRunningError, match=str(os.getpid())):
            FileLock(path).acquire()
    finally:
        first.release()

    with FileLock(path):
        pass


def test_stale_lock_is_cleared(tmp_path: Path) -> None:
    path = tmp_path / ".run.lock"
    path.write_text("99999", encoding="utf-8")
    old = time.time() - 7200
    os.utime(path, (old, old))

    lock = FileLock(path, stale_seconds=3600)
    lock.acquire()
    try:
        assert path.read_text(encoding="utf-8") == str(os.getpid())
    finally:
        lock.release()


def test_release_without_acquire_is_harmless(tmp_path: Path) -> None:
    path = tmp_path / ".run.lock"
    path.write_text("123", encoding="utf-8")

    FileLock(path).release()

    assert path.exists()
