"""Runtime orchestration for the token bot."""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Dict, List

from .config import network_settings
from .core import ExecutionMode, RetryConfig, RunSummary, Scheduler, SchedulerSettings, StateStore
from .exceptions import AlreadyRunningError, NoJobsAvailableError
from .executors import load_executors
from .metadata import MetadataClient, fetch_and_prepare
from .rpc import RpcClient, format_ether
from .utils.file_lock import FileLock
from .utils.job_pool import load_job_pool, save_job_pool
from .workflow import load_workflow


def build_scheduler_settings(config: Dict[str, Any]) -> SchedulerSettings:
    schedule = config["schedule"]
    retry = config["retry"]
    return SchedulerSettings(
        total_jobs=int(schedule["total_jobs"]),
        duration=float(schedule["duration_hours"]) * 3600.0,
        mode=ExecutionMode.parse(schedule["execution_mode"]),
        randomness=float(schedule["delay_randomness"]),
        retry=RetryConfig(
            max_attempts=int(retry["max_attempts"]),
            base_delay=float(retry["base_delay_seconds"]),
        ),
        sell_percentage=int(config["trading"]["sell_percentage"]),
        lock_poll_interval=float(schedule.get("lock_poll_interval", 2.0)),
    )


class TokenBotRuntime:
    def __init__(self, config: Dict[str, Any], logger) -> None:
        self.config = config
        self.logger = logger
        self.last_summary: RunSummary | None = None

    @property
    def paths(self) -> Dict[str, str]:
        return self.config.get("paths", {})

    def state_store(self) -> StateStore:
        return StateStore(self.paths["state_file"], logger=self.logger)

    # ------------------------------------------------------------------
    async def run(self) -> bool:
        if self.config.get("testing", {}).get("dry_run"):
            self.logger.info("Dry-run mode enabled; configuration validated successfully.")
            return True

        self.logger.info("Network: %s", self.config["network"]["mode"])
        try:
            jobs = load_job_pool(self.paths["metadata_file"])
        except NoJobsAvailableError as exc:
            self.logger.error("%s", exc)
            return False
        self.logger.info("Metadata loaded: %d entries (selected at random)", len(jobs))

        executors = load_executors(self.config)
        for executor in executors:
            self.logger.info("  wallet %s %s", executor.label, executor.address)

        workflow = load_workflow(self.config, logger=self.logger)
        scheduler = Scheduler(
            settings=build_scheduler_settings(self.config),
            store=self.state_store(),
            workflow=workflow,
            executors=executors,
            jobs=jobs,
            logger=self.logger,
        )
        try:
            with FileLock(self.paths["run_lock"]):
                summary = await scheduler.run()
        except AlreadyRunningError as exc:
            self.logger.error("%s", exc)
            return False
        finally:
            close = getattr(workflow, "aclose", None)
            if close is not None:
                await close()

        self.last_summary = summary
        self._write_summary(self.paths.get("summaries"), summary.to_dict())
        return summary.dispatched == 0 or summary.succeeded > 0

    async def prepare_metadata(self) -> int:
        section = self.config["metadata"]
        client = MetadataClient(
            token_list_base_url=str(section["token_list_api_base_url"]),
            upload_base_url=str(network_settings(self.config)["metadata_api_base_url"]),
            timeout=float(section.get("timeout", 30.0)),
            logger=self.logger,
        )
        try:
            jobs = await fetch_and_prepare(
                client,
                page=int(section["start_page"]),
                limit=int(section["limit_per_page"]),
                mode=str(section["mode"]),
                request_delay=float(section.get("request_delay", 0.5)),
                logger=self.logger,
            )
        finally:
            await client.aclose()
        path = save_job_pool(self.paths["metadata_file"], jobs)
        self.logger.info("Saved %d token(s) to %s", len(jobs), path)
        return len(jobs)

    def show_state(self) -> Dict[str, Any]:
        record = self.state_store().load()
        total = int(self.config["schedule"]["total_jobs"])
        self.logger.info("Tokens created: %d/%d", record.tokens_created, total)
        if record.start_time is not None:
            self.logger.info("Started: %s", time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.start_time)))
        for position, entry in enumerate(record.created_tokens, start=1):
            self.logger.info(
                "  [%d] %s: %s (wallet %d)", position, entry.job.symbol, entry.token_address, entry.wallet_index + 1
            )
        return record.to_dict()

    def reset_state(self) -> None:
        asyncio.run(self.state_store().reset())

    def show_wallets(self) -> List[Dict[str, Any]]:
        network = network_settings(self.config)
        client = RpcClient(str(network["rpc_url"]), logger=self.logger)
        rows: List[Dict[str, Any]] = []
        try:
            for executor in load_executors(self.config):
                if not executor.address.startswith("0x"):
                    self.logger.warning("Skipping %s: %s is not a chain address", executor.label, executor.address)
                    continue
                balance = client.get_balance(executor.address)
                rows.append({"wallet": executor.index + 1, "address": executor.address, "balance": balance})
                self.logger.info("%-6s %s  %s", executor.label, executor.address, format_ether(balance))
        finally:
            client.close()
        return rows

    # ------------------------------------------------------------------
    def _write_summary(self, directory: str | None, summary: Dict[str, Any]) -> None:
        if not directory:
            return
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        timestamp = time.strftime("%Y%m%dT%H%M%S", time.gmtime())
        summary_path = target_dir / f"run-summary-{timestamp}.json"
        summary_path.write_text(json.dumps(summary, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        self.logger.info("Run summary written to %s", summary_path)


__all__ = ["TokenBotRuntime", "build_scheduler_settings"]
