"""Logger setup for the bot, plus per-task context for scheduler records.

Task-level records carry ``task`` (1-based) and ``wallet`` (1-based) attributes.
The console shows them through the message prefix added by
:class:`TaskLogAdapter`; the JSON file output emits them as separate fields.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Tuple

LOGGER_NAME = "TokenBot"
LOG_FILENAME = "tokenbot.log"
TASK_FIELDS = ("task", "wallet")

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"

ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_BACKUPS = 5

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
RESET = "\033[0m"


class TaskLogAdapter(logging.LoggerAdapter):
    """Prefixes messages with the task and wallet and attaches both as ``extra``."""

    def __init__(self, logger: logging.Logger, task: int, wallet: int) -> None:
        super().__init__(logger, {"task": task, "wallet": wallet})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return f"Token {self.extra['task']} (wallet [{self.extra['wallet']}]): {msg}", kwargs


def task_logger(logger, task: int, wallet: int) -> TaskLogAdapter:
    return TaskLogAdapter(logger, task, wallet)


class ConsoleFormatter(logging.Formatter):
    def __init__(self, *, use_color: bool) -> None:
        super().__init__(CONSOLE_FORMAT, datefmt="%H:%M:%S")
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - colour branch
        text = super().format(record)
        color = LEVEL_COLORS.get(record.levelno) if self.use_color else None
        return f"{color}{text}{RESET}" if color else text


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record; task context becomes top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in TASK_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _console_handler(level: int, use_color: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(ConsoleFormatter(use_color=use_color))
    return handler


def _file_handler(directory: Path, level: int, json_lines: bool) -> logging.Handler:
    directory.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        directory / LOG_FILENAME, maxBytes=ROTATE_BYTES, backupCount=ROTATE_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JsonLineFormatter() if json_lines else logging.Formatter(FILE_FORMAT))
    return handler


def configure_logging(config: Mapping[str, object]) -> logging.Logger:
    """Attach console and, when ``log_dir`` is set, rotating file output to ``TokenBot``.

    Safe to call repeatedly: handlers from an earlier call are closed first.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()

    logger.addHandler(_console_handler(_level(config.get("console_level")), bool(config.get("color", True))))
    log_dir = config.get("log_dir") or config.get("logs")
    if log_dir:
        logger.addHandler(
            _file_handler(Path(str(log_dir)), _level(config.get("file_level")), bool(config.get("json_logs")))
        )
    return logger


def _level(name: object) -> int:
    if isinstance(name, int):
        return name
    resolved = logging.getLevelName(str(name).upper()) if name else None
    return resolved if isinstance(resolved, int) else logging.INFO


__all__ = [
    "JsonLineFormatter",
    "LOGGER_NAME",
    "TaskLogAdapter",
    "configure_logging",
    "task_logger",
]
