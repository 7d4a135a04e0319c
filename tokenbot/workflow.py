"""Boundary to the external create-then-sell workflow."""

from __future__ import annotations

import asyncio
import importlib
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, runtime_checkable

from .exceptions import ConfigError
from .executors import Executor
from .utils.job_pool import JobDescriptor


@dataclass(frozen=True)
class CreationResult:
    token_address: str
    tokens_received: int
    tx_hash: str | None = None


@runtime_checkable
class JobWorkflow(Protocol):
    async def create_job(self, executor: Executor, job: JobDescriptor) -> CreationResult:
        """Create the token and perform the initial buy; raise on revert or network failure."""

    async def dispose_of_portion(self, executor: Executor, token_address: str, amount: int) -> str:
        """Sell ``amount`` of the token and return the confirmation id."""


class SimulatedWorkflow:
    """Stand-in workflow with no external side effects.

    Latency and failure rate are configurable so rehearsal runs exercise the
    scheduler's waiting, locking and retry paths.
    """

    def __init__(
        self,
        *,
        logger,
        min_latency: float = 0.5,
        max_latency: float = 2.0,
        create_failure_rate: float = 0.0,
        sell_failure_rate: float = 0.0,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if min_latency < 0 or max_latency < min_latency:
            raise ValueError("latency bounds must satisfy 0 <= min_latency <= max_latency")
        for name, rate in (("create_failure_rate", create_failure_rate), ("sell_failure_rate", sell_failure_rate)):
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]")
        self.logger = logger
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.create_failure_rate = create_failure_rate
        self.sell_failure_rate = sell_failure_rate
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def create_job(self, executor: Executor, job: JobDescriptor) -> CreationResult:
        await self._sleep(self._rng.uniform(self.min_latency, self.max_latency))
        if self._rng.random() < self.create_failure_rate:
            raise RuntimeError(f"simulated revert while creating {job.symbol}")
        token_address = "0x%040x" % self._rng.getrandbits(160)
        tx_hash = "0x%064x" % self._rng.getrandbits(256)
        tokens_received = self._rng.randint(1, 10_000) * 10**18
        self.logger.debug("Simulated create of %s by %s -> %s", job.symbol, executor.address, token_address)
        return CreationResult(token_address=token_address, tokens_received=tokens_received, tx_hash=tx_hash)

    async def dispose_of_portion(self, executor: Executor, token_address: str, amount: int) -> str:
        await self._sleep(self._rng.uniform(self.min_latency, self.max_latency))
        if self._rng.random() < self.sell_failure_rate:
            raise RuntimeError(f"simulated sell failure for {token_address}")
        return "0x%064x" % self._rng.getrandbits(256)


def _import_factory(spec: str) -> Callable[..., Any]:
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"workflow.backend must be 'simulated' or 'module:callable' (got {spec!r})")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Unable to import workflow module {module_name!r}: {exc}") from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"{spec!r} does not name a callable workflow factory")
    return factory


def load_workflow(config: Mapping[str, Any], *, logger) -> JobWorkflow:
    section = config.get("workflow", {})
    backend = str(section.get("backend", "simulated"))
    if backend == "simulated":
        options = section.get("simulated", {})
        logger.warning("Using the simulated workflow; no tokens will be created on-chain.")
        return SimulatedWorkflow(
            logger=logger,
            min_latency=float(options.get("min_latency", 0.5)),
            max_latency=float(options.get("max_latency", 2.0)),
            create_failure_rate=float(options.get("create_failure_rate", 0.0)),
            sell_failure_rate=float(options.get("sell_failure_rate", 0.0)),
        )
    workflow = _import_factory(backend)(config=config, logger=logger)
    if not isinstance(workflow, JobWorkflow):
        raise ConfigError(f"{backend!r} returned {type(workflow).__name__}, which is not a JobWorkflow")
    return workflow


__all__ = ["CreationResult", "JobWorkflow", "SimulatedWorkflow", "load_workflow"]
