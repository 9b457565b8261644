import logging
from pathlib import Path
from typing import Optional

from stockkeep import data_handler
from stockkeep.pipeline import DataPipeline
from stockkeep.reconcile import diff_against_live, diff_snapshots, diff_view
from stockkeep.schemas import DiffRow, InventoryConfig, Snapshot, SnapshotDiff
from stockkeep.stores import RecordStore, SnapshotStore

logger = logging.getLogger(__name__)


class ReconciliationPipeline(DataPipeline):
    """
    Diffs two snapshots (or one snapshot against the live inventory), saves a
    dated report and posts the summary to the webhook outside test mode.
    """

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        config: InventoryConfig,
        first_id: Optional[str] = None,
        second_id: Optional[str] = None,
        live_store: Optional[RecordStore] = None,
        change_type: str = "all",
        sort_by: str = "change",
        output_dir: Optional[Path] = None,
        webhook_url: Optional[str] = None,
        save_json: bool = True,
        filename_base: str = "snapshot_diff",
        test_mode: bool = False,
    ):
        super().__init__("reconciliation", config, test_mode=test_mode)
        self.snapshot_store = snapshot_store
        self.first_id = first_id
        self.second_id = second_id
        self.live_store = live_store
        self.change_type = change_type
        self.sort_by = sort_by
        self.output_dir = output_dir
        self.webhook_url = webhook_url
        self.save_json = save_json
        self.filename_base = filename_base

    def extract(self) -> Optional[list[Snapshot]]:
        # Against live inventory only one stored snapshot is needed.
        wanted = 1 if self.live_store is not None else 2
        ids = [i for i in (self.first_id, self.second_id) if i]

        if ids:
            snapshots = [self.snapshot_store.get(i) for i in ids[:wanted]]
        else:
            snapshots = self.snapshot_store.latest(wanted)

        if len(snapshots) < wanted:
            logger.warning(f"⚠️ Need {wanted} snapshot(s) to reconcile, found {len(snapshots)}.")
            return None

        for snapshot in snapshots:
            logger.info(f"  > Using snapshot '{snapshot.label}' ({snapshot.timestamp.isoformat()})")
        return snapshots

    def transform(self, snapshots: list[Snapshot]) -> tuple[SnapshotDiff, list[DiffRow]]:
        if self.live_store is not None:
            diff = diff_against_live(snapshots[0], self.live_store.items())
        else:
            diff = diff_snapshots(snapshots[0], snapshots[1])

        rows = diff_view(
            diff,
            change_type=self.change_type,
            sort_by=self.sort_by,
            limit=self.config.diff_row_limit,
        )

        summary = diff.summary
        logger.info(
            f"Decreased: {summary.decreased} | Increased: {summary.increased} | "
            f"New: {summary.new} | Removed: {summary.removed} | Unchanged: {summary.unchanged}"
        )
        logger.info(f"Total sold: {summary.total_sold} | Total added: {summary.total_added}")
        if len(rows) < len(diff.rows) and self.change_type == "all":
            logger.info(f"Showing {len(rows)} of {len(diff.rows)} rows.")
        return diff, rows

    def load(self, transformed: tuple[SnapshotDiff, list[DiffRow]]) -> SnapshotDiff:
        diff, rows = transformed

        if self.output_dir is not None:
            data_handler.save_diff_report(
                diff, rows, self.output_dir, filename_base=self.filename_base, save_json=self.save_json
            )
        else:
            logger.warning("No output directory configured. Skipping report files.")

        if not self.test_mode:
            data_handler.post_to_webhook(self.webhook_url, diff, rows)
        else:
            logger.info("🧪 Test Mode: Skipping webhook post.")

        return diff
