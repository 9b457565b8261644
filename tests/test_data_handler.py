"""Tests for report files and the webhook post."""

import json
from datetime import datetime, timezone

import pandas as pd
import requests

from stockkeep import data_handler
from stockkeep.reconcile import diff_snapshots, diff_view, trend
from stockkeep.schemas import Item, Snapshot


def _snapshot(quantities: dict, day: int) -> Snapshot:
    items = tuple(Item(item_id=k, display_name=k.lower(), quantity=v) for k, v in quantities.items())
    return Snapshot(
        id=f"snap-{day}",
        label=f"Day {day}",
        timestamp=datetime(2024, 1, day, tzinfo=timezone.utc),
        item_count=len(items),
        items=items,
    )


def _diff():
    return diff_snapshots(_snapshot({"X": 100, "Z": 5}, 1), _snapshot({"X": 60, "Y": 10, "Z": 5}, 2))


class FakeResponse:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


def test_export_writes_file(tmp_path) -> None:
    path = tmp_path / "out" / "inventory.csv"

    content = data_handler.export_items_csv([Item(item_id="A", quantity=3)], path)

    assert path.read_text(encoding="utf-8") == content
    assert content.splitlines()[0].startswith("Item ID,Name,Quantity,Unit")


def test_save_diff_report(tmp_path) -> None:
    diff = _diff()
    rows = diff_view(diff, change_type="decreased")

    csv_path, json_path = data_handler.save_diff_report(diff, rows, tmp_path)

    df = pd.read_csv(csv_path)
    assert list(df.columns) == ["Item ID", "Name", "Old Qty", "New Qty", "Change", "Type"]
    assert df["Item ID"].tolist() == ["X"]
    assert df["Type"].tolist() == ["decreased"]

    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["summary"]["totalSold"] == 40
    assert payload["summary"]["unchanged"] == 1
    assert payload["truncated"] is True
    assert payload["older"]["id"] == "snap-1"


def test_save_diff_report_without_json(tmp_path) -> None:
    diff = _diff()

    csv_path, json_path = data_handler.save_diff_report(diff, diff.rows, tmp_path, save_json=False)

    assert csv_path.exists()
    assert json_path is None


def test_save_trend_report(tmp_path) -> None:
    snapshots = [_snapshot({"X": 100}, 1), _snapshot({"X": 60, "Y": 10}, 2)]

    path = data_handler.save_trend_report(trend(snapshots), ["Day 1", "Day 2"], tmp_path)

    df = pd.read_csv(path)
    assert list(df.columns) == ["Item ID", "Name", "Day 1", "Day 2", "Total Change"]
    assert df.loc[df["Item ID"] == "X", "Total Change"].item() == -40
    assert pd.isna(df.loc[df["Item ID"] == "Y", "Day 1"].item())


def test_webhook_skipped_without_url() -> None:
    diff = _diff()

    assert data_handler.post_to_webhook(None, diff, diff.rows) is False


def test_webhook_posts_payload(monkeypatch) -> None:
    sent = {}

    def fake_post(url, json=None, timeout=None):
        sent.update(url=url, json=json, timeout=timeout)
        return FakeResponse()

    monkeypatch.setattr(data_handler.requests, "post", fake_post)
    diff = _diff()

    assert data_handler.post_to_webhook("https://hooks.example.com/x", diff, diff.rows) is True
    assert sent["url"] == "https://hooks.example.com/x"
    assert sent["json"]["summary"]["totalAdded"] == 10
    assert sent["json"]["truncated"] is False
    assert sent["timeout"] == 15


def test_webhook_failure_is_not_fatal(monkeypatch) -> None:
    def failing_post(url, json=None, timeout=None):
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(data_handler.requests, "post", failing_post)
    diff = _diff()

    assert data_handler.post_to_webhook("https://hooks.example.com/x", diff, diff.rows) is False


def test_webhook_http_error_is_not_fatal(monkeypatch) -> None:
    monkeypatch.setattr(data_handler.requests, "post", lambda url, json=None, timeout=None: FakeResponse(500))
    diff = _diff()

    assert data_handler.post_to_webhook("https://hooks.example.com/x", diff, diff.rows) is False
