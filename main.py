"""Command-line entry point for the token bot."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Sequence

from tokenbot.config import load_config
from tokenbot.exceptions import ConfigError, CorruptStateError, InvalidScheduleInput
from tokenbot.logging_utils import configure_logging
from tokenbot.runtime import TokenBotRuntime

COMMANDS = ("run", "prepare-metadata", "show-state", "reset-state", "show-wallets")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Schedule token creation jobs across executor wallets.")
    parser.add_argument("command", nargs="?", default="run", choices=COMMANDS)
    parser.add_argument("--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--log-level", default=None, help="Console log level override")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt for reset-state")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        result = load_config(args.config, include_sources=True)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    config = result.config
    logging_config = dict(config.get("logging", {}))
    logging_config.setdefault("log_dir", config.get("paths", {}).get("logs"))
    if args.log_level:
        logging_config["console_level"] = args.log_level
    logger = configure_logging(logging_config)
    logger.info("Loaded configuration from: %s", ", ".join(result.sources) or "<defaults>")

    runtime = TokenBotRuntime(config, logger)
    try:
        if args.command == "run":
            success = asyncio.run(runtime.run())
            return 0 if success else 2
        if args.command == "prepare-metadata":
            prepared = asyncio.run(runtime.prepare_metadata())
            return 0 if prepared else 2
        if args.command == "show-state":
            print(json.dumps(runtime.show_state(), indent=2, ensure_ascii=False))
            return 0
        if args.command == "reset-state":
            if not args.yes:
                answer = input("Reset progress? Completed tokens will be forgotten. [y/N] ")
                if answer.strip().lower() not in ("y", "yes"):
                    logger.info("Reset cancelled.")
                    return 1
            runtime.reset_state()
            return 0
        runtime.show_wallets()
        return 0
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        logger.warning("Interrupted by user.")
        return 1
    except (CorruptStateError, InvalidScheduleInput, ConfigError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Runtime terminated due to unexpected error: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
