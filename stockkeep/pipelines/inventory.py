import logging
from pathlib import Path
from typing import Optional, Sequence

from stockkeep import utils
from stockkeep.exceptions import PartialFailureError, StockkeepError, StoreError, ValidationError
from stockkeep.parsers import parse_inventory
from stockkeep.pipeline import DataPipeline
from stockkeep.schemas import ImportOutcome, InventoryConfig, Item, MergeMode, MergeResult, ParseResult
from stockkeep.stores import RecordStore, SnapshotStore

logger = logging.getLogger(__name__)


def merge_items(items: Sequence[Item], store: RecordStore, mode: MergeMode) -> MergeResult:
    """
    Merges parsed items into the record store.

    replace: the store is cleared, then every item is inserted. This is not
    atomic; an insert failing after the clear raises PartialFailureError.

    update: existing items only get their quantity overwritten, every other
    field is preserved; unknown items are inserted in full. A failure on one
    item is recorded and the rest are still processed.
    """
    mode = MergeMode(mode)

    if mode is MergeMode.REPLACE:
        store.clear()
        inserted = 0
        for item in items:
            try:
                store.set(item.item_id, item.to_record())
            except Exception as e:
                raise PartialFailureError(inserted, len(items), item.item_id) from e
            inserted += 1
        logger.info(f"Replaced inventory with {inserted} items.")
        return MergeResult(mode=mode, imported=inserted)

    result = MergeResult(mode=mode)
    for item in items:
        try:
            if store.get(item.item_id) is None:
                store.set(item.item_id, item.to_record())
                result.imported += 1
            else:
                store.update(item.item_id, {"quantity": item.quantity})
                result.updated += 1
        except StockkeepError as e:
            logger.error(f"  > ERROR: Could not merge '{item.item_id}': {e}")
            result.failed += 1
            result.failures.append((item.item_id, str(e)))

    logger.info(
        f"Merged feed: {result.imported} new, {result.updated} updated, {result.failed} failed."
    )
    return result


class InventoryImportPipeline(DataPipeline):
    """Reads an inventory feed, validates it and merges it into the record store."""

    def __init__(
        self,
        store: RecordStore,
        config: InventoryConfig,
        mode: MergeMode = MergeMode.UPDATE,
        source: Optional[Path] = None,
        raw_text: Optional[str] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        test_mode: bool = False,
    ):
        super().__init__("inventory import", config, test_mode=test_mode)
        if source is None and raw_text is None:
            raise ValueError("Either a source file or raw feed text is required")
        self.store = store
        self.mode = MergeMode(mode)
        self.source = source
        self.raw_text = raw_text
        self.snapshot_store = snapshot_store

    def run(self) -> ImportOutcome:
        try:
            return super().run()
        except ValidationError as e:
            logger.error("❌ Data validation failed! The feed does not match the required schema.")
            for error in e.errors:
                logger.error(f"  > {error}")
            return ImportOutcome(success=False, errors=e.errors, warnings=e.warnings)
        except PartialFailureError as e:
            logger.error(f"❌ {e}. The inventory may be empty or partial; do not retry blindly.")
            raise

    def extract(self) -> Optional[str]:
        if self.raw_text is not None:
            return self.raw_text
        logger.info(f"  > Reading feed: {self.source}")
        return utils.read_text_file(self.source)

    def transform(self, raw_data: str) -> ParseResult:
        logger.info(f"--- Parsing feed ({len(self.config.exclusions)} exclusion patterns) ---")
        return parse_inventory(
            raw_data,
            self.config.exclusions,
            default_unit=self.config.default_unit,
        )

    def load(self, parsed: ParseResult) -> ImportOutcome:
        logger.info(f"--- Merging {len(parsed.items)} items ({self.mode.value} mode) ---")
        merge = merge_items(parsed.items, self.store, self.mode)

        outcome = ImportOutcome(
            success=merge.failed == 0,
            meta=parsed.meta,
            merge=merge,
            warnings=list(parsed.meta.warnings),
            errors=[f"{item_id}: {message}" for item_id, message in merge.failures],
        )

        if self.snapshot_store is not None:
            try:
                snapshot = self.snapshot_store.auto_snapshot(self.store.items())
            except StoreError as e:
                logger.error(f"❌ Automatic snapshot failed: {e}")
                outcome.warnings.append(f"Automatic snapshot failed: {e}")
            else:
                outcome.snapshot_id = snapshot.id if snapshot else None

        return outcome

    def empty_result(self) -> ImportOutcome:
        return ImportOutcome(success=False, errors=["No feed data found"])
