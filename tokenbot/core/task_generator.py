"""Spreads the remaining jobs across the run duration and the executor pool."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

from ..exceptions import InvalidScheduleInput
from ..utils.job_pool import JobDescriptor


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"

    @classmethod
    def parse(cls, value: "str | ExecutionMode") -> "ExecutionMode":
        try:
            return cls(value)
        except ValueError as exc:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(f"execution mode must be one of: {choices} (got {value!r})") from exc


@dataclass(frozen=True)
class Task:
    sequence_index: int
    wallet_index: int
    job: JobDescriptor
    offset: float
    scheduled_time: float

    @property
    def number(self) -> int:
        return self.sequence_index + 1


def generate_tasks(
    remaining: int,
    duration: float,
    pool_size: int,
    jobs: Sequence[JobDescriptor],
    start_time: float,
    *,
    mode: ExecutionMode = ExecutionMode.CONCURRENT,
    randomness: float = 0.0,
    rng: random.Random | None = None,
) -> List[Task]:
    """Return one task per remaining job, in sequence order.

    Concurrent mode draws each offset independently from ``[0, duration)``.
    Sequential mode spaces offsets evenly and jitters each by up to
    ``±randomness`` of its own base offset. Executors are assigned round-robin
    by sequence index in both modes, and jobs are sampled with replacement.
    """

    try:
        mode = ExecutionMode.parse(mode)
    except ValueError as exc:
        raise InvalidScheduleInput(str(exc)) from exc
    if remaining < 1:
        raise InvalidScheduleInput(f"remaining must be at least 1 (got {remaining})")
    if pool_size < 1:
        raise InvalidScheduleInput(f"pool_size must be at least 1 (got {pool_size})")
    if not jobs:
        raise InvalidScheduleInput("job pool must not be empty")
    if duration < 0:
        raise InvalidScheduleInput(f"duration must not be negative (got {duration})")
    if not 0.0 <= randomness <= 1.0:
        raise InvalidScheduleInput(f"randomness must be within [0, 1] (got {randomness})")

    source = rng or random.Random()

    tasks: List[Task] = []
    for index in range(remaining):
        if mode is ExecutionMode.CONCURRENT:
            offset = source.random() * duration
        else:
            offset = index * duration / remaining
            if randomness:
                offset *= 1 + randomness * source.uniform(-1.0, 1.0)
        tasks.append(
            Task(
                sequence_index=index,
                wallet_index=index % pool_size,
                job=source.choice(jobs),
                offset=offset,
                scheduled_time=start_time + offset,
            )
        )
    return tasks


def chronological(tasks: Sequence[Task]) -> List[Task]:
    return sorted(tasks, key=lambda task: (task.scheduled_time, task.sequence_index))


__all__ = ["ExecutionMode", "Task", "chronological", "generate_tasks"]
