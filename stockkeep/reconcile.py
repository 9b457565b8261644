"""Snapshot capture, two-snapshot diffing and multi-snapshot trends."""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from .schemas import DiffRow, DiffSummary, DiffType, Item, Snapshot, SnapshotDiff, TrendRow
from .utils import new_id, now_utc

DIFF_ROW_LIMIT = 1000

_SORT_KEYS = {
    "change": lambda row: row.change,
    "old_qty": lambda row: row.old_qty if row.old_qty is not None else -1,
    "new_qty": lambda row: row.new_qty if row.new_qty is not None else -1,
    "name": lambda row: (row.name or row.item_id).lower(),
}


def capture_snapshot(
    items: Iterable[Item],
    label: Optional[str] = None,
    auto: bool = False,
    now: Optional[datetime] = None,
) -> Snapshot:
    """Deep-copies the item set into a new immutable snapshot."""
    now = now or now_utc()
    copies = tuple(item.model_copy(deep=True) for item in items)
    return Snapshot(
        id=new_id(),
        label=(label or "").strip() or now.strftime("%Y-%m-%d"),
        timestamp=now,
        item_count=len(copies),
        items=copies,
        auto=auto,
    )


def _order(a: Snapshot, b: Snapshot) -> tuple[Snapshot, Snapshot]:
    # Ties on timestamp fall back to the ID so argument order never matters.
    if (a.timestamp, a.id) <= (b.timestamp, b.id):
        return a, b
    return b, a


def _name(item: Item) -> str:
    return item.display_name or ""


def diff_snapshots(a: Snapshot, b: Snapshot) -> SnapshotDiff:
    """
    Compares two snapshots keyed by item ID.

    The chronologically earlier snapshot is always treated as the older one.
    Items in both are increased/decreased/unchanged, items only in the newer
    snapshot are new and items only in the older one are removed. The summary
    always covers the full diff.
    """
    older, newer = _order(a, b)
    older_map = {item.item_id: item for item in older.items}
    newer_map = {item.item_id: item for item in newer.items}

    rows: list[DiffRow] = []
    summary = DiffSummary()

    for item_id, new_item in newer_map.items():
        old_item = older_map.get(item_id)
        if old_item is None:
            summary.new += 1
            summary.total_added += new_item.quantity
            rows.append(
                DiffRow(
                    item_id=item_id,
                    name=_name(new_item),
                    old_qty=None,
                    new_qty=new_item.quantity,
                    change=new_item.quantity,
                    type=DiffType.NEW,
                )
            )
            continue

        change = new_item.quantity - old_item.quantity
        if change < 0:
            summary.decreased += 1
            summary.total_sold += abs(change)
            change_type = DiffType.DECREASED
        elif change > 0:
            summary.increased += 1
            summary.total_added += change
            change_type = DiffType.INCREASED
        else:
            summary.unchanged += 1
            change_type = DiffType.UNCHANGED

        rows.append(
            DiffRow(
                item_id=item_id,
                name=_name(new_item),
                old_qty=old_item.quantity,
                new_qty=new_item.quantity,
                change=change,
                type=change_type,
            )
        )

    for item_id, old_item in older_map.items():
        if item_id in newer_map:
            continue
        summary.removed += 1
        summary.total_sold += old_item.quantity
        rows.append(
            DiffRow(
                item_id=item_id,
                name=_name(old_item),
                old_qty=old_item.quantity,
                new_qty=None,
                change=-old_item.quantity,
                type=DiffType.REMOVED,
            )
        )

    return SnapshotDiff(older=older, newer=newer, rows=rows, summary=summary)


def diff_against_live(
    snapshot: Snapshot, items: Iterable[Item], now: Optional[datetime] = None
) -> SnapshotDiff:
    """Diffs a stored snapshot against the live inventory."""
    live = capture_snapshot(items, label="Live inventory", now=now)
    return diff_snapshots(snapshot, live)


def diff_view(
    diff: SnapshotDiff,
    change_type: str = "all",
    sort_by: str = "change",
    descending: bool = False,
    limit: int = DIFF_ROW_LIMIT,
) -> list[DiffRow]:
    """
    Filters, sorts and truncates diff rows for display.
    The diff's summary is untouched: it keeps describing the full diff.
    """
    if sort_by not in _SORT_KEYS:
        raise ValueError(f"Unsupported sort field: {sort_by}")

    rows = diff.rows
    if change_type != "all":
        wanted = DiffType(change_type)
        rows = [row for row in rows if row.type == wanted]

    rows = sorted(rows, key=_SORT_KEYS[sort_by], reverse=descending)
    return rows[:limit]


def trend(snapshots: Sequence[Snapshot]) -> list[TrendRow]:
    """
    Joins several snapshots on item ID into sparse quantity series.

    Snapshots are ordered oldest to newest. A `None` entry means the item was
    not observed in that snapshot, which is different from a quantity of 0.
    """
    ordered = sorted(snapshots, key=lambda s: (s.timestamp, s.id))
    series: dict[str, list[Optional[int]]] = {}
    names: dict[str, str] = {}

    for position, snapshot in enumerate(ordered):
        for item in snapshot.items:
            quantities = series.setdefault(item.item_id, [None] * len(ordered))
            quantities[position] = item.quantity
            if item.display_name:
                names[item.item_id] = item.display_name

    rows = []
    for item_id in sorted(series):
        quantities = series[item_id]
        observed = [qty for qty in quantities if qty is not None]
        first_qty, last_qty = observed[0], observed[-1]
        rows.append(
            TrendRow(
                item_id=item_id,
                display_name=names.get(item_id, ""),
                quantities=quantities,
                first_qty=first_qty,
                last_qty=last_qty,
                total_change=last_qty - first_qty,
            )
        )
    return rows
