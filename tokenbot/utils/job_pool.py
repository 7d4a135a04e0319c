"""Loading and saving the pool of prepared token descriptors."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from ..exceptions import NoJobsAvailableError

_KEY_ALIASES = {
    "token_uri": ("token_uri", "tokenURI", "tokenUri"),
    "image_uri": ("image_uri", "imageUri"),
}


@dataclass(frozen=True)
class JobDescriptor:
    name: str
    symbol: str
    token_uri: str
    description: str = ""
    image_uri: str = ""
    twitter: str | None = None
    telegram: str | None = None
    website: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "symbol": self.symbol,
            "token_uri": self.token_uri,
            "description": self.description,
            "image_uri": self.image_uri,
        }
        for key in ("twitter", "telegram", "website"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "JobDescriptor":
        if not isinstance(data, Mapping):
            raise TypeError("Job descriptor must be a JSON object")
        return cls(
            name=str(data["name"]),
            symbol=str(data["symbol"]),
            token_uri=str(_first(data, _KEY_ALIASES["token_uri"], required=True)),
            description=str(data.get("description") or ""),
            image_uri=str(_first(data, _KEY_ALIASES["image_uri"]) or ""),
            twitter=data.get("twitter") or None,
            telegram=data.get("telegram") or None,
            website=data.get("website") or None,
        )


def _first(data: Mapping[str, Any], keys: Iterable[str], *, required: bool = False) -> Any:
    for key in keys:
        if data.get(key):
            return data[key]
    if required:
        raise KeyError(next(iter(keys)))
    return None


def load_job_pool(path: str | Path) -> List[JobDescriptor]:
    """Return the prepared descriptors; accepts a bare array or ``{"tokens": [...]}``."""

    file_path = Path(path)
    if not file_path.exists():
        raise NoJobsAvailableError(
            f"Metadata file not found: {file_path}. Run 'prepare-metadata' first."
        )
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise NoJobsAvailableError(f"Metadata file {file_path} is not valid JSON: {exc}") from exc
    if isinstance(data, Mapping):
        items = data.get("tokens", [])
    elif isinstance(data, list):
        items = data
    else:
        raise NoJobsAvailableError(f"Metadata file {file_path} must contain a JSON object or array")
    try:
        jobs = [JobDescriptor.from_mapping(item) for item in items]
    except (KeyError, TypeError, ValueError) as exc:
        raise NoJobsAvailableError(f"Metadata file {file_path} has a malformed entry: {exc!r}") from exc
    if not jobs:
        raise NoJobsAvailableError(
            f"No metadata available in {file_path}. Run 'prepare-metadata' to prepare tokens."
        )
    return jobs


def save_job_pool(path: str | Path, jobs: Iterable[JobDescriptor]) -> Path:
    file_path = Path(path)
    entries = [job.to_dict() for job in jobs]
    payload = {"tokens": entries, "total_count": len(entries)}
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp = file_path.with_suffix(".tmp")
    tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    tmp.replace(file_path)
    return file_path


__all__ = ["JobDescriptor", "load_job_pool", "save_job_pool"]
