from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from tokenbot.core import ProgressRecord, StateStore
from tokenbot.exceptions import CorruptStateError, StateUpdateError
from tokenbot.utils.job_pool import JobDescriptor


def _job(symbol: str) -> JobDescriptor:
    return JobDescriptor(name=f"Token {symbol}", symbol=symbol, token_uri=f"ipfs://{symbol}")


def _complete(symbol: str, wallet: int = 0, at: float = 1.0):
    def mutator(record: ProgressRecord) -> None:
        record.record_completion(token_address=f"0x{symbol}", job=_job(symbol), wallet_index=wallet, at=at)

    return mutator


def test_missing_file_loads_empty_record(store: StateStore) -> None:
    record = store.load()

    assert record.tokens_created == 0
    assert record.start_time is None
    assert record.created_tokens == []


def test_update_persists_full_record(store: StateStore, state_path: Path) -> None:
    asyncio.run(store.update(_complete("ALP", wallet=2, at=50.0)))

    data = json.loads(state_path.read_text(encoding="utf-8"))
    assert data["tokens_created"] == 1
    assert data["last_created_at"] == 50.0
    assert data["created_tokens"][0]["token_address"] == "0xALP"
    assert data["created_tokens"][0]["wallet_index"] == 2
    assert data["created_tokens"][0]["metadata"]["symbol"] == "ALP"

    reloaded = store.load()
    assert reloaded.tokens_created == 1
    assert reloaded.created_tokens[0].job == _job("ALP")


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"created_tokens": []}),
        json.dumps({"tokens_created": 2, "created_tokens": []}),
        json.dumps({"tokens_created": 1, "created_tokens": [{"token_address": "0x1"}]}),
    ],
)
def test_unreadable_record_is_fatal(store: StateStore, state_path: Path, content: str) -> None:
    state_path.parent.mkdir(parents=True)
    state_path.write_text(content, encoding="utf-8")

    with pytest.raises(CorruptStateError) as excinfo:
        store.load()
    assert str(state_path) in str(excinfo.value)


def test_concurrent_updates_are_never_lost(store: StateStore) -> None:
    async def scenario() -> None:
        await asyncio.gather(*(store.update(_complete(f"T{i}", wallet=i % 4)) for i in range(50)))

    asyncio.run(scenario())

    record = store.load()
    assert record.tokens_created == 50
    assert len(record.created_tokens) == 50


def test_waiters_are_served_in_request_order(store: StateStore) -> None:
    async def scenario() -> None:
        await asyncio.gather(*(store.update(_complete(f"T{i}")) for i in range(12)))

    asyncio.run(scenario())

    assert [entry.job.symbol for entry in store.load().created_tokens] == [f"T{i}" for i in range(12)]


def test_async_mutators_are_awaited(store: StateStore) -> None:
    async def mutator(record: ProgressRecord) -> None:
        await asyncio.sleep(0)
        _complete("ASY")(record)

    asyncio.run(store.update(mutator))

    assert store.load().tokens_created == 1


def test_failing_mutator_leaves_disk_untouched(store: StateStore, state_path: Path) -> None:
    asyncio.run(store.update(_complete("ALP")))
    before = state_path.read_bytes()

    def explode(record: ProgressRecord) -> None:
        _complete("BET")(record)
        raise RuntimeError("mutator failed halfway")

    with pytest.raises(RuntimeError):
        asyncio.run(store.update(explode))

    assert state_path.read_bytes() == before


def test_inconsistent_mutation_is_rejected(store: StateStore, state_path: Path) -> None:
    asyncio.run(store.update(_complete("ALP")))
    before = state_path.read_bytes()

    def bump_only(record: ProgressRecord) -> None:
        record.tokens_created += 1

    with pytest.raises(StateUpdateError):
        asyncio.run(store.update(bump_only))
    assert state_path.read_bytes() == before


def test_update_rereads_disk_instead_of_trusting_memory(state_path: Path, logger) -> None:
    first = StateStore(state_path, logger=logger)
    second = StateStore(state_path, logger=logger)

    asyncio.run(first.update(_complete("ONE")))
    asyncio.run(second.update(_complete("TWO")))
    asyncio.run(first.update(_complete("THREE")))

    assert [entry.job.symbol for entry in first.load().created_tokens] == ["ONE", "TWO", "THREE"]


def test_start_time_is_set_only_once(store: StateStore) -> None:
    assert asyncio.run(store.ensure_start_time(100.0)) == 100.0
    assert asyncio.run(store.ensure_start_time(999.0)) == 100.0
    assert store.load().start_time == 100.0


def test_reset_replaces_even_a_corrupt_record(store: StateStore, state_path: Path) -> None:
    state_path.parent.mkdir(parents=True)
    state_path.write_text("garbage", encoding="utf-8")

    asyncio.run(store.reset())

    record = store.load()
    assert record.tokens_created == 0
    assert record.start_time is None
    assert not (state_path.parent / "state.json.tmp").exists()
