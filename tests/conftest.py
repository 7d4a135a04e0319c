from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Sequence, Set, Tuple

import pytest

from tokenbot.core import StateStore
from tokenbot.executors import Executor
from tokenbot.utils.job_pool import JobDescriptor
from tokenbot.workflow import CreationResult


class FakeClock:
    """Wall clock whose sleeps advance time instantly."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)


class FakeWorkflow:
    def __init__(
        self,
        *,
        fail_wallets: Set[int] | None = None,
        sell_failures: int = 0,
        tokens_received: int = 1_000,
    ) -> None:
        self.fail_wallets = set(fail_wallets or ())
        self.sell_failures = sell_failures
        self.tokens_received = tokens_received
        self.created: List[Tuple[int, str]] = []
        self.sells: List[Tuple[int, str, int]] = []
        self.active: Dict[int, int] = defaultdict(int)
        self.max_active: Dict[int, int] = defaultdict(int)

    async def create_job(self, executor: Executor, job: JobDescriptor) -> CreationResult:
        self.active[executor.index] += 1
        self.max_active[executor.index] = max(self.max_active[executor.index], self.active[executor.index])
        try:
            for _ in range(3):
                await asyncio.sleep(0)
            if executor.index in self.fail_wallets:
                raise RuntimeError(f"execution reverted on wallet {executor.index}")
            address = "0x%040x" % (len(self.created) + 1)
            self.created.append((executor.index, address))
            return CreationResult(token_address=address, tokens_received=self.tokens_received)
        finally:
            self.active[executor.index] -= 1

    async def dispose_of_portion(self, executor: Executor, token_address: str, amount: int) -> str:
        self.sells.append((executor.index, token_address, amount))
        if self.sell_failures:
            self.sell_failures -= 1
            raise ConnectionError("rpc timeout")
        return "0xsold"


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tokenbot-tests")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def jobs() -> Sequence[JobDescriptor]:
    return [
        JobDescriptor(name="Alpha", symbol="ALP", token_uri="ipfs://alpha"),
        JobDescriptor(name="Beta", symbol="BET", token_uri="ipfs://beta"),
        JobDescriptor(name="Gamma", symbol="GAM", token_uri="ipfs://gamma"),
    ]


@pytest.fixture
def executors() -> List[Executor]:
    return [Executor(index=i, address="0x%040x" % (0xA0 + i)) for i in range(3)]


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "state.json"


@pytest.fixture
def store(state_path: Path, logger: logging.Logger) -> StateStore:
    return StateStore(state_path, logger=logger)
