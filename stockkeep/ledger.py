import logging
from datetime import datetime, timedelta
from typing import Optional

from .exceptions import NotFoundError
from .schemas import Transaction, TransactionType
from .stores import RecordStore, TransactionLog
from .utils import now_utc

logger = logging.getLogger(__name__)


def signed_delta(amount: int, transaction_type: TransactionType) -> int:
    """Sales always reduce stock, restocks and returns always add; adjustments keep their sign."""
    if transaction_type is TransactionType.SALE:
        return -abs(amount)
    if transaction_type in (TransactionType.RESTOCK, TransactionType.RETURN):
        return abs(amount)
    return amount


def record_transaction(
    store: RecordStore,
    log: TransactionLog,
    item_id: str,
    amount: int,
    transaction_type: TransactionType,
    note: str = "",
    now: Optional[datetime] = None,
) -> tuple[dict, Transaction]:
    """
    Applies a quantity change to one item and appends the matching audit entry.
    The item record stays the source of truth for the current quantity.
    """
    existing = store.get(item_id)
    if existing is None:
        raise NotFoundError("Item", item_id)

    delta = signed_delta(amount, transaction_type)
    new_quantity = int(existing.get("quantity") or 0) + delta
    record = store.update(item_id, {"quantity": new_quantity})
    transaction = log.append(item_id, delta, transaction_type, note=note, timestamp=now)

    logger.info(f"{transaction_type.value}: {item_id} {delta:+d} -> {new_quantity}")
    return record, transaction


def sales_velocity(
    log: TransactionLog, item_id: str, days: int = 30, now: Optional[datetime] = None
) -> float:
    """Average units sold per day over the trailing window."""
    if days <= 0:
        raise ValueError("days must be positive")

    now = now or now_utc()
    window = log.get_by_date_range(now - timedelta(days=days), now)
    sold = sum(
        -t.delta
        for t in window
        if t.item_id == item_id and t.type is TransactionType.SALE
    )
    return sold / days
