"""The fixed pool of executor wallets that jobs run on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping

from .exceptions import ConfigError


@dataclass(frozen=True)
class Executor:
    index: int
    address: str

    @property
    def label(self) -> str:
        return f"[{self.index + 1}]"


def load_executors(config: Mapping[str, Any]) -> List[Executor]:
    """Build the executor pool from ``executors.count`` and ``executors.addresses``.

    Addresses are supplied by the operator. The simulated workflow tolerates
    missing ones and receives numbered placeholders instead.
    """

    section = config.get("executors", {})
    count = int(section.get("count", 0))
    addresses = [str(address) for address in section.get("addresses") or []]
    simulated = str(config.get("workflow", {}).get("backend", "simulated")) == "simulated"

    if count < 1:
        raise ConfigError("executors.count must be at least 1")
    if len(addresses) < count:
        if not simulated:
            raise ConfigError(
                f"executors.addresses lists {len(addresses)} address(es) but executors.count is {count}"
            )
        addresses.extend(f"simulated-wallet-{index + 1}" for index in range(len(addresses), count))
    return [Executor(index=index, address=address) for index, address in enumerate(addresses[:count])]


__all__ = ["Executor", "load_executors"]
