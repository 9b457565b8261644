import json
import logging
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd
import requests

from . import utils
from .field_mapper import export_headers
from .schemas import DiffRow, Item, SnapshotDiff, TrendRow

logger = logging.getLogger(__name__)


def export_items_csv(items: Iterable[Item], path: Optional[Path] = None) -> str:
    """
    Writes items through the inverse field mapping so the CSV can be re-ingested.
    Returns the CSV text and also writes it to `path` when given.
    """
    headers = export_headers()
    rows = [
        {header: getattr(item, field.value) for field, header in headers.items()}
        for item in items
    ]
    df = pd.DataFrame(rows, columns=list(headers.values()))
    content = df.to_csv(index=False)

    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info(f"✅ Inventory exported to: {path}")
    return content


def save_diff_report(
    diff: SnapshotDiff,
    rows: list[DiffRow],
    output_dir: Path,
    filename_base: str = "snapshot_diff",
    save_json: bool = True,
) -> tuple[Path, Optional[Path]]:
    """Saves the displayed diff rows to CSV and, optionally, the full report to JSON, with dated filenames."""
    output_dir.mkdir(parents=True, exist_ok=True)
    date_suffix = utils.get_date_suffix_for_filename()

    csv_path = output_dir / f"{filename_base}_{date_suffix}.csv"
    json_path = output_dir / f"{filename_base}_{date_suffix}.json"

    csv_columns = [info.alias or name for name, info in DiffRow.model_fields.items()]
    df = pd.DataFrame([row.model_dump(mode="json", by_alias=True) for row in rows], columns=csv_columns)
    df.to_csv(csv_path, index=False)
    logger.info(f"✅ Diff report saved to: {csv_path}")

    if not save_json:
        logger.info("Skipping JSON file save as per configuration.")
        return csv_path, None

    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(build_diff_payload(diff, rows), f, indent=2, default=str)
    logger.info(f"✅ JSON output saved to: {json_path}")
    return csv_path, json_path


def save_trend_report(rows: list[TrendRow], labels: list[str], output_dir: Path) -> Path:
    """One column per snapshot label; empty cells mean the item was not observed."""
    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / f"snapshot_trend_{utils.get_date_suffix_for_filename()}.csv"

    records = []
    for row in rows:
        record = {"Item ID": row.item_id, "Name": row.display_name}
        for label, qty in zip(labels, row.quantities):
            record[label] = qty
        record["Total Change"] = row.total_change
        records.append(record)

    df = pd.DataFrame(records, columns=["Item ID", "Name", *labels, "Total Change"])
    df.to_csv(csv_path, index=False)
    logger.info(f"✅ Trend report saved to: {csv_path}")
    return csv_path


def build_diff_payload(diff: SnapshotDiff, rows: list[DiffRow]) -> dict:
    return {
        "older": {"id": diff.older.id, "label": diff.older.label, "timestamp": diff.older.timestamp.isoformat()},
        "newer": {"id": diff.newer.id, "label": diff.newer.label, "timestamp": diff.newer.timestamp.isoformat()},
        "summary": diff.summary.model_dump(by_alias=True),
        "rows": [row.model_dump(mode="json", by_alias=True) for row in rows],
        "truncated": len(rows) < len(diff.rows),
    }


def post_to_webhook(webhook_url: Optional[str], diff: SnapshotDiff, rows: list[DiffRow]) -> bool:
    """
    Posts the diff summary and displayed rows to the webhook.
    Delivery problems are logged; they never fail the reconciliation.
    """
    if not webhook_url:
        logger.warning("⚠️ WEBHOOK_URL not set. Skipping webhook post.")
        return False

    logger.info(f"🚀 Posting diff summary to webhook: {webhook_url}")
    try:
        response = requests.post(webhook_url, json=build_diff_payload(diff, rows), timeout=15)
        response.raise_for_status()
        logger.info("✅ Diff summary successfully posted to webhook.")
        return True
    except requests.exceptions.RequestException as e:
        logger.error(f"❌ Error posting to webhook: {e}")
        return False
