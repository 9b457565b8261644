import argparse
import sys
from pathlib import Path

from stockkeep import settings
from stockkeep.data_handler import export_items_csv, save_trend_report
from stockkeep.exceptions import NotFoundError, PartialFailureError, StoreError
from stockkeep.exclusions import compile_exclusions
from stockkeep.ledger import record_transaction
from stockkeep.logger import setup_logger
from stockkeep.pipelines.inventory import InventoryImportPipeline
from stockkeep.pipelines.reconciliation import ReconciliationPipeline
from stockkeep.reconcile import trend
from stockkeep.schemas import MergeMode, TransactionType
from stockkeep.status import labeling_summary, readiness_stats, status_counts
from stockkeep.stores import JsonRecordStore, JsonSnapshotStore, JsonTransactionLog

logger = setup_logger("stockkeep")


def _record_store() -> JsonRecordStore:
    return JsonRecordStore(settings.DATA_DIR / settings.ITEMS_FILENAME)


def _snapshot_store() -> JsonSnapshotStore:
    return JsonSnapshotStore(settings.DATA_DIR / settings.SNAPSHOTS_FILENAME)


def _live_items(config):
    """Live inventory as the rest of the app sees it: exclusions applied."""
    return compile_exclusions(config.exclusions).filter_items(_record_store().items())


def cmd_import(args, config) -> int:
    try:
        pipeline = InventoryImportPipeline(
            _record_store(),
            config,
            mode=MergeMode(args.mode),
            source=args.file,
            snapshot_store=_snapshot_store(),
        )
        outcome = pipeline.run()
    except PartialFailureError:
        return 2
    except StoreError as e:
        logger.error(f"❌ {e}")
        return 1

    for warning in outcome.warnings:
        logger.warning(f"  > {warning}")
    if not outcome.success:
        for error in outcome.errors:
            logger.error(f"  > {error}")
        return 1

    merge = outcome.merge
    logger.info(f"Imported {merge.imported}, updated {merge.updated}.")
    return 0


def cmd_snapshot(args, config) -> int:
    items = _live_items(config)
    if not items:
        logger.error("❌ No inventory data to snapshot.")
        return 1
    snapshot = _snapshot_store().save(items, label=args.label)
    logger.info(f"Snapshot id: {snapshot.id}")
    return 0


def cmd_snapshots(args, config) -> int:
    store = _snapshot_store()
    if args.delete:
        try:
            store.delete(args.delete)
        except NotFoundError as e:
            logger.error(f"❌ {e}")
            return 1
        logger.info(f"Snapshot {args.delete} deleted.")
        return 0

    for snapshot in store.list_all():
        kind = "auto" if snapshot.auto else "manual"
        logger.info(
            f"{snapshot.id}  {snapshot.timestamp:%Y-%m-%d %H:%M}  {snapshot.label} "
            f"({snapshot.item_count} items, {kind})"
        )
    return 0


def cmd_diff(args, config) -> int:
    try:
        pipeline = ReconciliationPipeline(
            _snapshot_store(),
            config,
            first_id=args.first,
            second_id=args.second,
            live_store=_record_store() if args.live else None,
            change_type=args.type,
            sort_by=args.sort,
            output_dir=settings.OUTPUT_DIR,
            webhook_url=settings.WEBHOOK_URL,
            save_json=settings.SAVE_JSON_OUTPUT,
            filename_base=settings.DIFF_FILENAME_BASE,
            test_mode=args.test_mode,
        )
        diff = pipeline.run()
    except (NotFoundError, StoreError) as e:
        logger.error(f"❌ {e}")
        return 1
    return 0 if diff is not None else 1


def cmd_trend(args, config) -> int:
    snapshots = list(reversed(_snapshot_store().latest(args.last)))
    if not snapshots:
        logger.error("❌ No snapshots available.")
        return 1

    rows = trend(snapshots)
    save_trend_report(rows, [s.label for s in snapshots], settings.OUTPUT_DIR)
    for row in sorted(rows, key=lambda r: r.total_change)[: args.top]:
        logger.info(f"{row.item_id:<30} {row.display_name:<30} {row.total_change:+d}")
    return 0


def cmd_status(args, config) -> int:
    items = _live_items(config)
    for key, value in status_counts(items, config.thresholds).items():
        logger.info(f"{key}: {value}")
    logger.info("\n--- Labeling ---")
    for key, value in labeling_summary(items).items():
        logger.info(f"{key}: {value}")
    logger.info("\n--- Sales Readiness ---")
    for key, value in readiness_stats(items).items():
        logger.info(f"{key}: {value}")
    return 0


def cmd_export(args, config) -> int:
    output = args.output or settings.OUTPUT_DIR / "inventory-export.csv"
    export_items_csv(_live_items(config), output)
    return 0


def cmd_record(args, config) -> int:
    log = JsonTransactionLog(settings.DATA_DIR / settings.TRANSACTIONS_FILENAME)
    try:
        record_transaction(
            _record_store(), log, args.item_id, args.amount, TransactionType(args.type), note=args.note
        )
    except NotFoundError as e:
        logger.error(f"❌ {e}")
        return 1
    return 0


def cmd_exclude(args, config) -> int:
    patterns = list(config.exclusions)
    if args.remove:
        patterns = [p for p in patterns if p != args.pattern]
    elif args.pattern not in patterns:
        patterns.append(args.pattern)
    settings.save_config(config.model_copy(update={"exclusions": patterns}))
    logger.info(f"{len(patterns)} exclusion patterns saved.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inventory ingestion and snapshot reconciliation.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Import an inventory CSV feed")
    p.add_argument("file", type=Path)
    p.add_argument("--mode", choices=[m.value for m in MergeMode], default=MergeMode.UPDATE.value)
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("snapshot", help="Take a manual snapshot of the live inventory")
    p.add_argument("--label", default=None)
    p.set_defaults(func=cmd_snapshot)

    p = sub.add_parser("snapshots", help="List or delete snapshots")
    p.add_argument("--delete", metavar="SNAPSHOT_ID", default=None)
    p.set_defaults(func=cmd_snapshots)

    p = sub.add_parser("diff", help="Diff two snapshots (defaults to the two most recent)")
    p.add_argument("first", nargs="?", default=None)
    p.add_argument("second", nargs="?", default=None)
    p.add_argument("--live", action="store_true", help="Compare a snapshot against the live inventory")
    p.add_argument(
        "--type", default="all", choices=["all", "decreased", "increased", "new", "removed", "unchanged"]
    )
    p.add_argument("--sort", default="change", choices=["change", "old_qty", "new_qty", "name"])
    p.add_argument("--test-mode", action="store_true", help="Skip the webhook post")
    p.set_defaults(func=cmd_diff)

    p = sub.add_parser("trend", help="Quantity trend across the most recent snapshots")
    p.add_argument("--last", type=int, default=7)
    p.add_argument("--top", type=int, default=20)
    p.set_defaults(func=cmd_trend)

    p = sub.add_parser("status", help="Stock status, labeling and readiness overview")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("export", help="Export the live inventory as a re-importable CSV")
    p.add_argument("--output", type=Path, default=None)
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("record", help="Record a sale, restock, return or adjustment")
    p.add_argument("item_id")
    p.add_argument("amount", type=int)
    p.add_argument("--type", default=TransactionType.SALE.value, choices=[t.value for t in TransactionType])
    p.add_argument("--note", default="")
    p.set_defaults(func=cmd_record)

    p = sub.add_parser("exclude", help="Add or remove an exclusion pattern")
    p.add_argument("pattern")
    p.add_argument("--remove", action="store_true")
    p.set_defaults(func=cmd_exclude)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = settings.load_config()
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
