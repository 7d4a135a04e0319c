"""Per-executor outcome counters for a single run."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from statistics import mean
from typing import Dict, List


@dataclass
class OutcomeRecord:
    wallet_index: int
    elapsed: float
    status: str


class MetricsTracker:
    def __init__(self) -> None:
        self.records: List[OutcomeRecord] = []
        self._retries: Dict[int, int] = defaultdict(int)

    def record(self, wallet_index: int, elapsed: float, *, status: str) -> None:
        self.records.append(OutcomeRecord(wallet_index=wallet_index, elapsed=float(elapsed), status=status))

    def record_retry(self, wallet_index: int) -> None:
        self._retries[wallet_index] += 1

    def summary(self) -> Dict[str, object]:
        per_wallet: Dict[int, Dict[str, object]] = {}
        for record in self.records:
            bucket = per_wallet.setdefault(record.wallet_index, {"success": 0, "failure": 0, "elapsed": []})
            if record.status == "success":
                bucket["success"] += 1
            else:
                bucket["failure"] += 1
            bucket["elapsed"].append(record.elapsed)
        wallets: Dict[str, Dict[str, object]] = {}
        for wallet_index in sorted(per_wallet):
            data = per_wallet[wallet_index]
            elapsed_values = data["elapsed"]
            wallets[str(wallet_index + 1)] = {
                "success": data["success"],
                "failure": data["failure"],
                "sell_retries": self._retries.get(wallet_index, 0),
                "avg_elapsed": mean(elapsed_values) if elapsed_values else 0.0,
            }
        return {"total_tasks": len(self.records), "wallets": wallets}


__all__ = ["MetricsTracker", "OutcomeRecord"]
