"""Durable, crash-safe progress record for a scheduling run."""

from __future__ import annotations

import asyncio
import inspect
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from ..exceptions import CorruptStateError, StateUpdateError
from ..utils.job_pool import JobDescriptor


@dataclass
class CompletedJob:
    token_address: str
    job: JobDescriptor
    created_at: float
    wallet_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_address": self.token_address,
            "metadata": self.job.to_dict(),
            "created_at": self.created_at,
            "wallet_index": self.wallet_index,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CompletedJob":
        return cls(
            token_address=str(data["token_address"]),
            job=JobDescriptor.from_mapping(data["metadata"]),
            created_at=float(data["created_at"]),
            wallet_index=int(data["wallet_index"]),
        )


@dataclass
class ProgressRecord:
    """Progress of the whole run; ``tokens_created == len(created_tokens)``."""

    tokens_created: int = 0
    start_time: Optional[float] = None
    last_created_at: Optional[float] = None
    created_tokens: List[CompletedJob] = field(default_factory=list)

    def record_completion(
        self,
        *,
        token_address: str,
        job: JobDescriptor,
        wallet_index: int,
        at: float,
    ) -> CompletedJob:
        entry = CompletedJob(token_address=token_address, job=job, created_at=at, wallet_index=wallet_index)
        self.created_tokens.append(entry)
        self.tokens_created += 1
        self.last_created_at = at
        return entry

    def is_consistent(self) -> bool:
        return self.tokens_created == len(self.created_tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokens_created": self.tokens_created,
            "start_time": self.start_time,
            "last_created_at": self.last_created_at,
            "created_tokens": [entry.to_dict() for entry in self.created_tokens],
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProgressRecord":
        start_time = data.get("start_time")
        last_created_at = data.get("last_created_at")
        return cls(
            tokens_created=int(data["tokens_created"]),
            start_time=float(start_time) if start_time is not None else None,
            last_created_at=float(last_created_at) if last_created_at is not None else None,
            created_tokens=[CompletedJob.from_mapping(item) for item in data.get("created_tokens", [])],
        )


class JsonFileBackend:
    """Reads and writes the serialized record; knows nothing about locking."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read_bytes(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None

    def write_bytes(self, payload: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        tmp.replace(self.path)


Mutator = Callable[[ProgressRecord], Union[None, Awaitable[None]]]


class StateStore:
    """Sole writer of the progress record.

    ``update`` runs inside an :class:`asyncio.Lock`, which serves waiters in
    the order they asked, so concurrent completions are applied one at a time
    against the freshest on-disk copy.
    """

    def __init__(self, path: str | Path, *, logger, backend: JsonFileBackend | None = None) -> None:
        self.backend = backend or JsonFileBackend(path)
        self.logger = logger
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self.backend.path

    # ------------------------------------------------------------------
    def load(self) -> ProgressRecord:
        raw = self.backend.read_bytes()
        if raw is None:
            return ProgressRecord()
        return self._decode(raw)

    async def update(self, mutator: Mutator) -> ProgressRecord:
        async with self._lock:
            record = await asyncio.to_thread(self.load)
            outcome = mutator(record)
            if inspect.isawaitable(outcome):
                await outcome
            if not record.is_consistent():
                raise StateUpdateError(
                    f"tokens_created={record.tokens_created} does not match "
                    f"{len(record.created_tokens)} recorded job(s)"
                )
            await asyncio.to_thread(self.backend.write_bytes, self._encode(record))
            return record

    async def ensure_start_time(self, now: float) -> float:
        """Set the run start once and return the value that is persisted."""

        def _stamp(record: ProgressRecord) -> None:
            if record.start_time is None:
                record.start_time = now

        record = await self.update(_stamp)
        return float(record.start_time)

    async def reset(self) -> ProgressRecord:
        """Replace whatever is on disk, readable or not, with an empty record."""

        empty = ProgressRecord()
        async with self._lock:
            await asyncio.to_thread(self.backend.write_bytes, self._encode(empty))
        self.logger.info("Progress record at %s reset", self.path)
        return empty

    # ------------------------------------------------------------------
    def _encode(self, record: ProgressRecord) -> bytes:
        return (json.dumps(record.to_dict(), indent=2, ensure_ascii=False) + "\n").encode("utf-8")

    def _decode(self, raw: bytes) -> ProgressRecord:
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptStateError(str(self.path), str(exc)) from exc
        if not isinstance(data, Mapping):
            raise CorruptStateError(str(self.path), "root must be a JSON object")
        try:
            record = ProgressRecord.from_mapping(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptStateError(str(self.path), f"malformed field: {exc}") from exc
        if not record.is_consistent():
            raise CorruptStateError(
                str(self.path),
                f"tokens_created={record.tokens_created} but {len(record.created_tokens)} entries recorded",
            )
        return record


__all__ = ["CompletedJob", "JsonFileBackend", "ProgressRecord", "StateStore"]
