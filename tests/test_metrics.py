from __future__ import annotations

from tokenbot.metrics import MetricsTracker


def test_summary_groups_outcomes_per_wallet() -> None:
    tracker = MetricsTracker()
    tracker.record(0, 1.0, status="success")
    tracker.record(0, 3.0, status="failure")
    tracker.record(2, 2.0, status="success")
    tracker.record_retry(0)

    summary = tracker.summary()

    assert summary["total_tasks"] == 3
    assert summary["wallets"]["1"] == {"success": 1, "failure": 1, "sell_retries": 1, "avg_elapsed": 2.0}
    assert summary["wallets"]["3"]["sell_retries"] == 0
    assert "2" not in summary["wallets"]


def test_empty_tracker() -> None:
    assert MetricsTracker().summary() == {"total_tasks": 0, "wallets": {}}
