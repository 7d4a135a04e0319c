"""Error types raised by the token scheduler."""

from __future__ import annotations


class TokenBotError(Exception):
    """Base class for every error raised by ``tokenbot``."""


class ConfigError(TokenBotError, ValueError):
    """Raised when a configuration value is missing or out of range."""


class InvalidScheduleInput(TokenBotError, ValueError):
    """Raised when the task generator is called with unusable arguments."""


class CorruptStateError(TokenBotError):
    """Raised when the persisted progress record cannot be decoded. Never retried."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Progress record at {path} is unreadable: {reason}")
        self.path = path
        self.reason = reason


class StateUpdateError(TokenBotError):
    """Raised when a state mutator leaves the record inconsistent."""


class RetryExhaustedError(TokenBotError):
    """Raised when an operation failed on every permitted attempt."""

    def __init__(self, label: str, attempts: int, last_error: BaseException) -> None:
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        self.last_error_message = str(last_error) or type(last_error).__name__
        super().__init__(f"{label} failed after {attempts} attempts: {self.last_error_message}")


class TaskExecutionError(TokenBotError):
    """Raised when the job workflow fails for a single task."""

    def __init__(self, sequence_index: int, message: str) -> None:
        super().__init__(f"Task {sequence_index + 1} failed: {message}")
        self.sequence_index = sequence_index
        self.message = message


class NoJobsAvailableError(TokenBotError):
    """Raised when the job pool is missing or empty."""


class AlreadyRunningError(TokenBotError):
    """Raised when another process already holds the run lock."""


__all__ = [
    "AlreadyRunningError",
    "ConfigError",
    "CorruptStateError",
    "InvalidScheduleInput",
    "NoJobsAvailableError",
    "RetryExhaustedError",
    "StateUpdateError",
    "TaskExecutionError",
    "TokenBotError",
]
