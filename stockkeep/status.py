import math
from enum import Enum
from typing import Any, Iterable, NamedTuple

from .schemas import Item, StockThresholds


class StockStatus(str, Enum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    NEARLY_OUT = "NEARLY_OUT"
    LOW_STOCK = "LOW_STOCK"
    GOOD_STOCK = "GOOD_STOCK"
    ON_ORDER = "ON_ORDER"


class StatusInfo(NamedTuple):
    label: str
    priority: int
    action: str


STATUS_CONFIG = {
    StockStatus.OUT_OF_STOCK: StatusInfo("Out of Stock", 1, "Order Immediately"),
    StockStatus.NEARLY_OUT: StatusInfo("Nearly Out", 2, "Order Urgently"),
    StockStatus.LOW_STOCK: StatusInfo("Low Stock", 3, "Order Soon"),
    StockStatus.GOOD_STOCK: StatusInfo("Good Stock", 4, "No Action Needed"),
    StockStatus.ON_ORDER: StatusInfo("On Order", 5, "Monitor Delivery"),
}

ORDERING_STATUSES = (StockStatus.OUT_OF_STOCK, StockStatus.NEARLY_OUT, StockStatus.LOW_STOCK)


def _as_number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return 0 if math.isnan(number) else number


def classify(quantity: Any, thresholds: StockThresholds, has_active_order: bool = False) -> StockStatus:
    """
    Stock urgency for one item. An active order always wins; otherwise the
    quantity is compared against inclusive upper bounds in ascending order.
    Missing or non-numeric quantities count as 0.
    """
    if has_active_order:
        return StockStatus.ON_ORDER

    qty = _as_number(quantity)
    if qty <= thresholds.out_of_stock:
        return StockStatus.OUT_OF_STOCK
    elif qty <= thresholds.nearly_out:
        return StockStatus.NEARLY_OUT
    elif qty <= thresholds.low_stock:
        return StockStatus.LOW_STOCK
    else:
        return StockStatus.GOOD_STOCK


def classify_item(item: Item, thresholds: StockThresholds) -> StockStatus:
    return classify(item.quantity, thresholds, item.has_active_order)


def needs_ordering(status: StockStatus) -> bool:
    return status in ORDERING_STATUSES


def sort_by_status_priority(items: Iterable[Item], thresholds: StockThresholds) -> list[Item]:
    """Most urgent first; the sort is stable within a status."""
    return sorted(items, key=lambda item: STATUS_CONFIG[classify_item(item, thresholds)].priority)


def status_counts(items: Iterable[Item], thresholds: StockThresholds) -> dict[str, int]:
    counts = {status.value: 0 for status in StockStatus}
    total = 0
    for item in items:
        counts[classify_item(item, thresholds).value] += 1
        total += 1

    counts["total"] = total
    counts["needsOrdering"] = sum(counts[status.value] for status in ORDERING_STATUSES)
    return counts


def off_books(quantity: int, labeled_count: int) -> int:
    """
    Labeled units that recorded stock does not account for.

    With nothing on hand, every labeled unit is off-books.
    """
    if quantity == 0 and labeled_count > 0:
        return labeled_count
    if quantity < 0:
        return max(0, labeled_count - abs(quantity))
    return max(0, labeled_count - quantity)


# ========== LABELING ==========


class LabelingState(str, Enum):
    UNLABELED = "unlabeled"
    PARTIAL = "partial"
    LABELED = "labeled"


def labeling_state(item: Item) -> LabelingState:
    if item.labeled_count <= 0 and item.quantity > 0:
        return LabelingState.UNLABELED
    if item.labeled_count >= item.quantity:
        return LabelingState.LABELED
    return LabelingState.PARTIAL


def labeling_summary(items: Iterable[Item]) -> dict[str, int]:
    items = list(items)
    counts = {state.value: 0 for state in LabelingState}
    for item in items:
        counts[labeling_state(item).value] += 1

    total_quantity = sum(item.quantity for item in items)
    total_labeled = sum(item.labeled_count for item in items)
    return {
        **counts,
        "totalProducts": len(items),
        "totalQuantity": total_quantity,
        "totalLabeled": total_labeled,
        "totalUnlabeled": total_quantity - total_labeled,
        "labeledPercentage": round(total_labeled / total_quantity * 100) if total_quantity > 0 else 0,
        "offBooks": sum(off_books(item.quantity, item.labeled_count) for item in items),
    }


# ========== SALES READINESS ==========


def check_sales_readiness(item: Item) -> list[str]:
    """
    Returns the requirements an item still misses before it can be sold:
    a recorded purity, a recorded net weight and at least one applied label.
    An empty list means the item is ready.
    """
    missing = []
    if not (item.purity or "").strip():
        missing.append("Purity")
    if not (item.net_weight or "").strip():
        missing.append("Net Weight")
    if item.labeled_count <= 0:
        missing.append("Label")
    return missing


def readiness_stats(items: Iterable[Item]) -> dict[str, int]:
    stats = {
        "total": 0,
        "ready": 0,
        "blocked": 0,
        "missingPurity": 0,
        "missingNetWeight": 0,
        "missingLabel": 0,
    }
    for item in items:
        stats["total"] += 1
        missing = check_sales_readiness(item)
        if not missing:
            stats["ready"] += 1
            continue

        stats["blocked"] += 1
        if "Purity" in missing:
            stats["missingPurity"] += 1
        if "Net Weight" in missing:
            stats["missingNetWeight"] += 1
        if "Label" in missing:
            stats["missingLabel"] += 1
    return stats
