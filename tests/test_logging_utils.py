from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from tokenbot.logging_utils import LOG_FILENAME, LOGGER_NAME, configure_logging, task_logger


@pytest.fixture
def bot_logger():
    yield logging.getLogger(LOGGER_NAME)
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_console_and_rotating_file_handlers(bot_logger, tmp_path: Path) -> None:
    logger = configure_logging({"console_level": "warning", "file_level": "DEBUG", "log_dir": str(tmp_path)})

    assert logger is bot_logger
    console, file_handler = logger.handlers
    assert console.level == logging.WARNING
    assert isinstance(file_handler, RotatingFileHandler)
    assert file_handler.level == logging.DEBUG


def test_reconfiguring_replaces_handlers(bot_logger, tmp_path: Path) -> None:
    configure_logging({"log_dir": str(tmp_path)})
    logger = configure_logging({"log_dir": str(tmp_path)})

    assert len(logger.handlers) == 2


def test_json_file_output(bot_logger, tmp_path: Path) -> None:
    logger = configure_logging({"log_dir": str(tmp_path), "json_logs": True, "console_level": "CRITICAL"})

    logger.info("Token %d created", 3)
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / LOG_FILENAME).read_text(encoding="utf-8").strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["message"] == "Token 3 created"
    assert payload["level"] == "INFO"
    assert payload["logger"] == LOGGER_NAME


def test_unknown_level_falls_back_to_info(bot_logger) -> None:
    logger = configure_logging({"console_level": "chatty"})

    assert [handler.level for handler in logger.handlers] == [logging.INFO]


def test_json_output_carries_task_context(bot_logger, tmp_path: Path) -> None:
    logger = configure_logging({"log_dir": str(tmp_path), "json_logs": True, "console_level": "CRITICAL"})

    task_logger(logger, 4, 2).error("failed, skipping: %s", "execution reverted")
    logger.info("Creation schedule:")
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / LOG_FILENAME).read_text(encoding="utf-8").strip().splitlines()
    task_entry, plain_entry = (json.loads(line) for line in lines[-2:])
    assert task_entry["message"] == "Token 4 (wallet [2]): failed, skipping: execution reverted"
    assert (task_entry["task"], task_entry["wallet"]) == (4, 2)
    assert "task" not in plain_entry and "wallet" not in plain_entry


def test_task_logger_keeps_caller_extra(caplog) -> None:
    base = logging.getLogger("tokenbot-adapter-test")

    with caplog.at_level(logging.INFO, logger=base.name):
        task_logger(base, 1, 3).info("selling", extra={"amount": 500})

    (record,) = caplog.records
    assert (record.task, record.wallet, record.amount) == (1, 3, 500)
