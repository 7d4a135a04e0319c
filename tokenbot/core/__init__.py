"""Scheduling and coordination components for the token bot."""

from .resource_lock import ResourceLockTable
from .retry import RetryConfig, retry_with_config, with_retry
from .scheduler import RunSummary, Scheduler, SchedulerSettings, TaskOutcome, TaskState
from .state_store import CompletedJob, JsonFileBackend, ProgressRecord, StateStore
from .task_generator import ExecutionMode, Task, generate_tasks

__all__ = [
    "CompletedJob",
    "ExecutionMode",
    "JsonFileBackend",
    "ProgressRecord",
    "ResourceLockTable",
    "RetryConfig",
    "RunSummary",
    "Scheduler",
    "SchedulerSettings",
    "StateStore",
    "Task",
    "TaskOutcome",
    "TaskState",
    "generate_tasks",
    "retry_with_config",
    "with_retry",
]
