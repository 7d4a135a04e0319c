"""Configuration loading and validation for the token bot."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Tuple

import yaml

from .exceptions import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_PATH = CONFIG_DIR / "config.yaml"
ENV_CONFIG_PATH = "TOKENBOT_CONFIG"

NETWORK_MODES = ("mainnet", "testnet")
EXECUTION_MODES = ("sequential", "concurrent")
METADATA_MODES = ("upload", "reuse")


DEFAULT_CONFIG: Dict[str, Any] = {
    "network": {
        "mode": "testnet",
    },
    "networks": {
        "mainnet": {
            "rpc_url": "http://localhost:8545",
            "chain_id": 143,
            "metadata_api_base_url": "http://localhost:8080",
        },
        "testnet": {
            "rpc_url": "http://localhost:8545",
            "chain_id": 10143,
            "metadata_api_base_url": "http://localhost:8080",
        },
    },
    "executors": {
        "count": 5,
        "addresses": [],
    },
    "schedule": {
        "total_jobs": 10,
        "duration_hours": 24.0,
        "execution_mode": "concurrent",
        "delay_randomness": 0.5,
        "lock_poll_interval": 2.0,
    },
    "trading": {
        "initial_buy_amount": "0.1",
        "sell_percentage": 100,
    },
    "retry": {
        "max_attempts": 3,
        "base_delay_seconds": 5.0,
    },
    "metadata": {
        "token_list_api_base_url": "http://localhost:8080",
        "start_page": 1,
        "limit_per_page": 100,
        "mode": "upload",
        "request_delay": 0.5,
        "timeout": 30.0,
    },
    "workflow": {
        "backend": "simulated",
        "simulated": {
            "min_latency": 0.5,
            "max_latency": 2.0,
            "create_failure_rate": 0.0,
            "sell_failure_rate": 0.0,
        },
    },
    "paths": {
        "data": "data",
        "state_file": "data/state.json",
        "metadata_file": "data/metadata.json",
        "summaries": "data/summaries",
        "logs": "logs",
        "run_lock": "data/.run.lock",
    },
    "logging": {
        "console_level": "INFO",
        "file_level": "DEBUG",
        "json_logs": False,
        "color": True,
    },
    "testing": {
        "dry_run": False,
    },
}


@dataclass(frozen=True)
class ConfigLoadResult:
    """Container for the merged configuration."""

    config: Dict[str, Any]
    sources: Tuple[str, ...]


def _ensure_default_config(path: Path) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with tmp.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(DEFAULT_CONFIG, handle, sort_keys=False)
    tmp.replace(path)


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, MutableMapping):
        raise ConfigError(f"Configuration file {path} must contain a mapping at the root")
    return dict(data)


def _deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], MutableMapping)
            and isinstance(value, MutableMapping)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_path_defaults(config: Dict[str, Any], base_dir: Path) -> Dict[str, Any]:
    paths = dict(config.get("paths", {}))
    for key, value in paths.items():
        if isinstance(value, str) and value:
            path = Path(value).expanduser()
            paths[key] = str(path if path.is_absolute() else (base_dir / path).resolve())
    config["paths"] = paths
    return config


def _collect_sources(explicit: Path | None) -> Iterable[Tuple[Path, bool]]:
    if explicit is None:
        yield CONFIG_PATH, True
    env_path = os.getenv(ENV_CONFIG_PATH)
    if env_path:
        yield Path(env_path).expanduser(), False
    if explicit is not None:
        yield explicit, True


def _number(config: Mapping[str, Any], section: str, key: str, cast=float):
    value = config.get(section, {}).get(key)
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{section}.{key} must be a number (got {value!r})") from exc


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    mode = config.get("network", {}).get("mode")
    _require(mode in NETWORK_MODES, f"network.mode must be one of {NETWORK_MODES} (got {mode!r})")
    network = config.get("networks", {}).get(mode)
    _require(isinstance(network, Mapping), f"networks.{mode} must be defined")
    for key in ("rpc_url", "chain_id", "metadata_api_base_url"):
        _require(bool(network.get(key)), f"networks.{mode}.{key} is required")

    _require(_number(config, "executors", "count", int) >= 1, "executors.count must be at least 1")
    addresses = config.get("executors", {}).get("addresses") or []
    _require(isinstance(addresses, list), "executors.addresses must be a list")

    schedule = config.get("schedule", {})
    _require(_number(config, "schedule", "total_jobs", int) >= 1, "schedule.total_jobs must be at least 1")
    _require(_number(config, "schedule", "duration_hours") > 0, "schedule.duration_hours must be greater than 0")
    _require(
        schedule.get("execution_mode") in EXECUTION_MODES,
        f"schedule.execution_mode must be one of {EXECUTION_MODES} (got {schedule.get('execution_mode')!r})",
    )
    randomness = _number(config, "schedule", "delay_randomness")
    _require(0.0 <= randomness <= 1.0, "schedule.delay_randomness must be between 0.0 and 1.0")
    _require(_number(config, "schedule", "lock_poll_interval") > 0, "schedule.lock_poll_interval must be > 0")

    sell = _number(config, "trading", "sell_percentage", int)
    _require(0 <= sell <= 100, "trading.sell_percentage must be between 0 and 100")

    _require(_number(config, "retry", "max_attempts", int) >= 1, "retry.max_attempts must be at least 1")
    _require(_number(config, "retry", "base_delay_seconds") >= 0, "retry.base_delay_seconds must be >= 0")

    metadata = config.get("metadata", {})
    _require(
        metadata.get("mode") in METADATA_MODES,
        f"metadata.mode must be one of {METADATA_MODES} (got {metadata.get('mode')!r})",
    )
    _require(_number(config, "metadata", "start_page", int) >= 1, "metadata.start_page must be at least 1")
    _require(_number(config, "metadata", "limit_per_page", int) >= 1, "metadata.limit_per_page must be at least 1")
    _require(_number(config, "metadata", "request_delay") >= 0, "metadata.request_delay must be >= 0")

    backend = str(config.get("workflow", {}).get("backend", ""))
    _require(
        backend == "simulated" or ":" in backend,
        f"workflow.backend must be 'simulated' or 'module:callable' (got {backend!r})",
    )
    if backend != "simulated":
        _require(
            len(addresses) >= int(config["executors"]["count"]),
            "executors.addresses must list at least executors.count addresses",
        )
    return config


def network_settings(config: Mapping[str, Any]) -> Mapping[str, Any]:
    mode = config["network"]["mode"]
    return config["networks"][mode]


def load_config(
    path: str | Path | None = None,
    *,
    include_sources: bool = False,
) -> ConfigLoadResult | Dict[str, Any]:
    """Load and validate configuration settings."""

    explicit = Path(path).expanduser() if path is not None else None
    config: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
    sources: list[str] = []

    for source, required in _collect_sources(explicit):
        if required and explicit is None:
            _ensure_default_config(source)
        if not source.exists():
            if required:
                raise ConfigError(f"Configuration file not found: {source}")
            continue
        config = _deep_merge(config, _load_yaml(source))
        sources.append(str(source.resolve()))

    base_dir = explicit.resolve().parent if explicit is not None else PROJECT_ROOT
    config = _apply_path_defaults(config, base_dir)
    config = validate_config(config)

    result = ConfigLoadResult(config=config, sources=tuple(sources))
    if include_sources:
        return result
    return result.config


__all__ = [
    "DEFAULT_CONFIG",
    "ConfigLoadResult",
    "load_config",
    "network_settings",
    "validate_config",
]
