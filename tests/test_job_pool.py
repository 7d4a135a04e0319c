from __future__ import annotations

import json
from pathlib import Path

import pytest

from tokenbot.exceptions import NoJobsAvailableError
from tokenbot.utils import JobDescriptor, load_job_pool, save_job_pool


def test_save_then_load_keeps_descriptors(tmp_path: Path) -> None:
    jobs = [
        JobDescriptor(name="Alpha", symbol="ALP", token_uri="ipfs://a", twitter="https://x.com/alp"),
        JobDescriptor(name="Beta", symbol="BET", token_uri="ipfs://b", description="second"),
    ]
    path = save_job_pool(tmp_path / "data" / "metadata.json", jobs)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["total_count"] == 2
    assert "telegram" not in data["tokens"][0]
    assert load_job_pool(path) == jobs


def test_bare_array_with_camel_case_keys(tmp_path: Path) -> None:
    path = tmp_path / "metadata.json"
    path.write_text(
        json.dumps([{"name": "Gamma", "symbol": "GAM", "tokenURI": "ipfs://g", "imageUri": "ipfs://gi"}]),
        encoding="utf-8",
    )

    (job,) = load_job_pool(path)

    assert job.token_uri == "ipfs://g"
    assert job.image_uri == "ipfs://gi"


def test_missing_file_means_no_jobs(tmp_path: Path) -> None:
    with pytest.raises(NoJobsAvailableError, match="prepare-metadata"):
        load_job_pool(tmp_path / "absent.json")


def test_empty_pool_means_no_jobs(tmp_path: Path) -> None:
    path = tmp_path / "metadata.json"
    path.write_text(json.dumps({"tokens": [], "total_count": 0}), encoding="utf-8")

    with pytest.raises(NoJobsAvailableError):
        load_job_pool(path)


@pytest.mark.parametrize(
    "content,reason",
    [
        (json.dumps([{"name": "Delta", "symbol": "DEL"}]), "malformed entry"),
        (json.dumps({"tokens": ["just-a-string"]}), "malformed entry"),
        ('{"tokens": [', "not valid JSON"),
        ('"tokens"', "JSON object or array"),
    ],
)
def test_malformed_pool_names_the_file(tmp_path: Path, content: str, reason: str) -> None:
    path = tmp_path / "metadata.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(NoJobsAvailableError, match=reason) as excinfo:
        load_job_pool(path)
    assert str(path) in str(excinfo.value)
