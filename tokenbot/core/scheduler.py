"""Dispatches generated tasks onto the executor pool and records progress."""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..exceptions import CorruptStateError, RetryExhaustedError, TaskExecutionError
from ..logging_utils import TaskLogAdapter, task_logger
from ..executors import Executor
from ..metrics import MetricsTracker
from ..utils.job_pool import JobDescriptor
from ..workflow import JobWorkflow
from .resource_lock import ResourceLockTable
from .retry import RetryConfig, retry_with_config
from .state_store import ProgressRecord, StateStore
from .task_generator import ExecutionMode, Task, chronological, generate_tasks

PREVIEW_LIMIT = 10


class TaskState(str, Enum):
    PENDING = "pending"
    WAITING = "waiting"
    WAITING_FOR_RESOURCE = "waiting_for_resource"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SchedulerSettings:
    total_jobs: int
    duration: float
    mode: ExecutionMode
    randomness: float
    retry: RetryConfig
    sell_percentage: int = 100
    lock_poll_interval: float = 2.0

    def __post_init__(self) -> None:
        if self.total_jobs < 1:
            raise ValueError("total_jobs must be at least 1")
        if self.duration <= 0:
            raise ValueError("duration must be positive")
        if not 0 <= self.sell_percentage <= 100:
            raise ValueError("sell_percentage must be within [0, 100]")
        if self.lock_poll_interval <= 0:
            raise ValueError("lock_poll_interval must be positive")


@dataclass(frozen=True)
class TaskOutcome:
    task: Task
    state: TaskState
    token_address: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is TaskState.COMPLETED


@dataclass
class RunSummary:
    total_jobs: int
    completed_before: int
    completed_after: int
    start_time: float
    outcomes: List[TaskOutcome] = field(default_factory=list)
    elapsed: float = 0.0
    metrics: Dict[str, object] = field(default_factory=dict)

    @property
    def dispatched(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed(self) -> int:
        return self.dispatched - self.succeeded

    @property
    def failures(self) -> List[TaskOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_jobs": self.total_jobs,
            "completed_before": self.completed_before,
            "completed_after": self.completed_after,
            "start_time": self.start_time,
            "dispatched": self.dispatched,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [
                {"task": outcome.task.number, "wallet": outcome.task.wallet_index + 1, "error": outcome.error}
                for outcome in self.failures
            ],
            "elapsed_seconds": self.elapsed,
            "metrics": self.metrics,
        }


class Scheduler:
    """Runs the remaining jobs of a progress record across the executor pool.

    Every collaborator is injected so independent runs never share state:
    the lock table and state store belong to this scheduler for the run.
    """

    def __init__(
        self,
        *,
        settings: SchedulerSettings,
        store: StateStore,
        workflow: JobWorkflow,
        executors: Sequence[Executor],
        jobs: Sequence[JobDescriptor],
        logger,
        locks: ResourceLockTable | None = None,
        metrics: MetricsTracker | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if not executors:
            raise ValueError("at least one executor is required")
        self.settings = settings
        self.store = store
        self.workflow = workflow
        self.executors = list(executors)
        self.jobs = list(jobs)
        self.logger = logger
        self.locks = locks or ResourceLockTable()
        self.metrics = metrics or MetricsTracker()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._states: Dict[int, TaskState] = {}

    # ------------------------------------------------------------------
    async def run(self) -> RunSummary:
        record = await asyncio.to_thread(self.store.load)
        start_time = record.start_time
        if start_time is None:
            start_time = await self.store.ensure_start_time(self._clock())
        run_started = self._clock()

        self._log_header(record, start_time)
        summary = RunSummary(
            total_jobs=self.settings.total_jobs,
            completed_before=record.tokens_created,
            completed_after=record.tokens_created,
            start_time=start_time,
        )

        remaining = max(0, self.settings.total_jobs - record.tokens_created)
        if remaining == 0:
            self.logger.info("All %d token(s) have already been created.", self.settings.total_jobs)
            return summary

        self.logger.info("Generating %d token creation task(s)...", remaining)
        tasks = generate_tasks(
            remaining,
            self.settings.duration,
            len(self.executors),
            self.jobs,
            start_time,
            mode=self.settings.mode,
            randomness=self.settings.randomness,
            rng=self._rng,
        )
        self._states = {task.sequence_index: TaskState.PENDING for task in tasks}
        self._log_preview(tasks)

        self.logger.info("Starting %s execution...", self.settings.mode.value)
        if self.settings.mode is ExecutionMode.CONCURRENT:
            outcomes = await asyncio.gather(*(self.execute(task) for task in tasks))
        else:
            outcomes = []
            for task in chronological(tasks):
                outcomes.append(await self.execute(task))

        final = await asyncio.to_thread(self.store.load)
        summary.outcomes = list(outcomes)
        summary.completed_after = final.tokens_created
        summary.elapsed = self._clock() - run_started
        summary.metrics = self.metrics.summary()
        self._log_summary(summary, final)
        return summary

    def state_of(self, sequence_index: int) -> Optional[TaskState]:
        return self._states.get(sequence_index)

    # ------------------------------------------------------------------
    async def execute(self, task: Task) -> TaskOutcome:
        """Drive one task to a terminal state; only corrupt state escapes."""

        executor = self.executors[task.wallet_index]
        log = task_logger(self.logger, task.number, task.wallet_index + 1)
        self._transition(task, TaskState.WAITING, log)
        wait = task.scheduled_time - self._clock()
        if wait > 0:
            log.info(
                "scheduled at %s; waiting %.2f minute(s)",
                time.strftime("%H:%M:%S", time.localtime(task.scheduled_time)),
                wait / 60,
            )
            await self._sleep(wait)

        self._transition(task, TaskState.WAITING_FOR_RESOURCE, log)
        while not self.locks.try_acquire(task.wallet_index):
            log.debug("wallet is busy, polling again in %.1fs", self.settings.lock_poll_interval)
            await self._sleep(self.settings.lock_poll_interval)

        started = time.perf_counter()
        self._transition(task, TaskState.RUNNING, log)
        try:
            token_address = await self._run_workflow(task, executor, log)
        except CorruptStateError:
            self._transition(task, TaskState.FAILED, log)
            raise
        except Exception as exc:
            self._transition(task, TaskState.FAILED, log)
            self.metrics.record(task.wallet_index, time.perf_counter() - started, status="failure")
            log.error("failed, skipping: %s", exc)
            return TaskOutcome(task=task, state=TaskState.FAILED, error=str(exc))
        finally:
            self.locks.release(task.wallet_index)

        self._transition(task, TaskState.COMPLETED, log)
        self.metrics.record(task.wallet_index, time.perf_counter() - started, status="success")
        log.info("created successfully: %s", token_address)
        return TaskOutcome(task=task, state=TaskState.COMPLETED, token_address=token_address)

    async def _run_workflow(self, task: Task, executor: Executor, log: TaskLogAdapter) -> str:
        log.info(
            "creating %d/%d: %s from %s",
            task.number,
            self.settings.total_jobs,
            task.job.symbol,
            executor.address,
        )
        # Creation is never retried.
        try:
            created = await self.workflow.create_job(executor, task.job)
        except Exception as exc:
            raise TaskExecutionError(task.sequence_index, str(exc) or type(exc).__name__) from exc

        # Commit point: progress is recorded before the sell.
        await self.store.update(
            lambda record: self._append_completion(record, task, created.token_address)
        )
        log.info("created and saved to state")

        if self.settings.sell_percentage > 0:
            amount = created.tokens_received * self.settings.sell_percentage // 100
            attempts = 0

            async def _sell() -> str:
                nonlocal attempts
                attempts += 1
                if attempts > 1:
                    self.metrics.record_retry(task.wallet_index)
                return await self.workflow.dispose_of_portion(executor, created.token_address, amount)

            log.info("selling %d%% of %s...", self.settings.sell_percentage, task.job.symbol)
            try:
                await retry_with_config(
                    _sell,
                    f"Sell tokens for {task.job.symbol}",
                    self.settings.retry,
                    logger=log,
                    sleep=self._sleep,
                )
            except RetryExhaustedError:
                log.error(
                    "exists at %s but its sell never confirmed; the wallet still holds tokens",
                    created.token_address,
                )
                raise
        return created.token_address

    def _append_completion(self, record: ProgressRecord, task: Task, token_address: str) -> None:
        record.record_completion(
            token_address=token_address,
            job=task.job,
            wallet_index=task.wallet_index,
            at=self._clock(),
        )

    def _transition(self, task: Task, state: TaskState, log: TaskLogAdapter) -> None:
        previous = self._states.get(task.sequence_index, TaskState.PENDING)
        self._states[task.sequence_index] = state
        log.debug("%s -> %s", previous.value, state.value)

    # ------------------------------------------------------------------
    def _log_header(self, record: ProgressRecord, start_time: float) -> None:
        self.logger.info(
            "Total tokens: %d | completed: %d | wallets: %d | mode: %s | randomness: %.0f%% | sell: %d%%",
            self.settings.total_jobs,
            record.tokens_created,
            len(self.executors),
            self.settings.mode.value,
            self.settings.randomness * 100,
            self.settings.sell_percentage,
        )
        self.logger.info(
            "Start time: %s | estimated completion: %s",
            time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(start_time)),
            time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(start_time + self.settings.duration)),
        )

    def _log_preview(self, tasks: Sequence[Task]) -> None:
        ordered = chronological(tasks)
        self.logger.info("Creation schedule:")
        for task in ordered[:PREVIEW_LIMIT]:
            self.logger.info(
                "  %d. %-10s at %s (wallet %d)",
                task.number,
                task.job.symbol,
                time.strftime("%H:%M:%S", time.localtime(task.scheduled_time)),
                task.wallet_index + 1,
            )
        if len(ordered) > PREVIEW_LIMIT:
            self.logger.info("  ... and %d more", len(ordered) - PREVIEW_LIMIT)

    def _log_summary(self, summary: RunSummary, final: ProgressRecord) -> None:
        self.logger.info(
            "Execution summary: %d dispatched, %d succeeded, %d failed",
            summary.dispatched,
            summary.succeeded,
            summary.failed,
        )
        for outcome in summary.failures:
            self.logger.warning(
                "  token %d (wallet [%d]): %s", outcome.task.number, outcome.task.wallet_index + 1, outcome.error
            )
        self.logger.info(
            "Tokens created: %d/%d in %.2f hour(s)",
            final.tokens_created,
            summary.total_jobs,
            (self._clock() - summary.start_time) / 3600,
        )


__all__ = ["RunSummary", "Scheduler", "SchedulerSettings", "TaskOutcome", "TaskState"]
