from __future__ import annotations

from tokenbot.core import ResourceLockTable


def test_try_acquire_fails_while_busy() -> None:
    locks = ResourceLockTable()

    assert locks.try_acquire(2) is True
    assert locks.is_locked(2) is True
    assert locks.try_acquire(2) is False


def test_release_frees_the_wallet_again() -> None:
    locks = ResourceLockTable()
    locks.try_acquire(0)

    locks.release(0)

    assert locks.is_locked(0) is False
    assert locks.try_acquire(0) is True


def test_release_is_idempotent_and_indices_are_independent() -> None:
    locks = ResourceLockTable()
    locks.release(5)
    locks.release(5)

    assert locks.try_acquire(1) is True
    assert locks.try_acquire(3) is True
    assert [index for index in range(6) if locks.is_locked(index)] == [1, 3]
    assert locks.is_locked(5) is False


def test_new_table_starts_with_everything_free() -> None:
    first = ResourceLockTable()
    first.try_acquire(0)

    assert ResourceLockTable().is_locked(0) is False
