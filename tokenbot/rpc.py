"""Minimal JSON-RPC reader for executor wallet balances."""

from __future__ import annotations

import itertools
import logging
from decimal import Decimal
from typing import Any, List

import requests

WEI_PER_TOKEN = Decimal(10) ** 18


class RpcError(RuntimeError):
    """Raised when the node answers with a JSON-RPC error object."""


def format_ether(wei: int, places: int = 6) -> str:
    value = (Decimal(wei) / WEI_PER_TOKEN).quantize(Decimal(1).scaleb(-places))
    return f"{value:f}"


class RpcClient:
    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        logger: logging.Logger,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.logger = logger
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = self._session.post(self.url, json=payload, timeout=self.timeout)
        try:
            response.raise_for_status()
        except requests.HTTPError:
            self.logger.error("%s responded with HTTP %s", self.url, response.status_code)
            raise
        data = response.json()
        if data.get("error"):
            error = data["error"]
            raise RpcError(f"{method} failed: {error.get('message', error)}")
        return data.get("result")

    def get_balance(self, address: str) -> int:
        return int(self.call("eth_getBalance", [address, "latest"]), 16)

    def close(self) -> None:
        self._session.close()


__all__ = ["RpcClient", "RpcError", "format_ether"]
