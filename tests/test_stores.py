"""Tests for the record, snapshot and transaction stores."""

from datetime import datetime, timedelta, timezone

import pytest

from stockkeep.exceptions import NotFoundError, StoreError
from stockkeep.schemas import Item, TransactionType
from stockkeep.stores import (
    JsonRecordStore,
    JsonSnapshotStore,
    JsonTransactionLog,
    MemoryRecordStore,
    MemorySnapshotStore,
    MemoryTransactionLog,
)

MORNING = datetime(2024, 3, 1, 9, tzinfo=timezone.utc)


class ReadOnlyRecordStore(MemoryRecordStore):
    """Record store whose backing file can no longer be written."""

    def _flush(self, records):
        raise StoreError("disk full")


class ReadOnlySnapshotStore(MemorySnapshotStore):
    def _flush(self, snapshots):
        raise StoreError("disk full")


def _items(count: int = 2) -> list[Item]:
    return [Item(item_id=f"I{n}", display_name=f"Item {n}", quantity=n * 10) for n in range(count)]


# ========== RECORD STORE ==========


def test_set_stamps_identity_and_update_time() -> None:
    store = MemoryRecordStore()

    stored = store.set("A", {"quantity": 3})

    assert stored["itemId"] == "A"
    assert "updatedAt" in stored
    assert store.get("A")["quantity"] == 3


def test_update_merges_partial_record() -> None:
    store = MemoryRecordStore([{"itemId": "A", "quantity": 3, "notes": "n"}])

    store.update("A", {"quantity": 5})

    assert store.get("A")["quantity"] == 5
    assert store.get("A")["notes"] == "n"


def test_update_unknown_item_raises() -> None:
    with pytest.raises(NotFoundError, match="Item Z not found"):
        MemoryRecordStore().update("Z", {"quantity": 1})


def test_get_returns_a_copy() -> None:
    store = MemoryRecordStore([{"itemId": "A", "quantity": 3}])

    store.get("A")["quantity"] = 99

    assert store.get("A")["quantity"] == 3


def test_get_all_sorted_and_items_validated() -> None:
    store = MemoryRecordStore([{"itemId": "B", "quantity": 1}, {"itemId": "A", "quantity": 2}])

    assert [r["itemId"] for r in store.get_all()] == ["A", "B"]
    assert [item.item_id for item in store.items()] == ["A", "B"]


def test_delete_and_clear() -> None:
    store = MemoryRecordStore([{"itemId": "A"}, {"itemId": "B"}])

    store.delete("A")
    assert store.get("A") is None

    store.clear()
    assert store.get_all() == []


def test_json_record_store_persists(tmp_path) -> None:
    path = tmp_path / "items.json"
    JsonRecordStore(path).set("A", Item(item_id="A", quantity=4, purity="99").to_record())

    reopened = JsonRecordStore(path)

    assert reopened.get("A")["quantity"] == 4
    assert reopened.items()[0].purity == "99"


def test_json_store_unreadable_file(tmp_path) -> None:
    path = tmp_path / "items.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError, match="Could not read"):
        JsonRecordStore(path)


# ========== SNAPSHOT STORE ==========


def test_list_all_newest_first() -> None:
    store = MemorySnapshotStore()
    first = store.save(_items(), label="first", now=MORNING)
    second = store.save(_items(), label="second", now=MORNING + timedelta(days=1))

    assert [s.id for s in store.list_all()] == [second.id, first.id]
    assert [s.id for s in store.latest(1)] == [second.id]


def test_get_and_delete_unknown_snapshot() -> None:
    store = MemorySnapshotStore()

    with pytest.raises(NotFoundError):
        store.get("missing")
    with pytest.raises(NotFoundError):
        store.delete("missing")


def test_delete_snapshot() -> None:
    store = MemorySnapshotStore()
    snapshot = store.save(_items(), now=MORNING)

    store.delete(snapshot.id)

    assert store.list_all() == []


def test_auto_snapshot_at_most_once_per_day() -> None:
    store = MemorySnapshotStore()

    first = store.auto_snapshot(_items(), now=MORNING)
    again = store.auto_snapshot(_items(), now=MORNING + timedelta(hours=9))
    next_day = store.auto_snapshot(_items(), now=MORNING + timedelta(days=1))

    assert first.auto is True
    assert first.label == "Auto 2024-03-01"
    assert again is None
    assert next_day.label == "Auto 2024-03-02"
    assert len(store.list_all()) == 2


def test_manual_snapshot_does_not_block_auto_snapshot() -> None:
    store = MemorySnapshotStore()
    store.save(_items(), label="manual", now=MORNING)

    assert store.auto_snapshot(_items(), now=MORNING + timedelta(hours=1)) is not None


def test_auto_snapshot_skips_empty_inventory() -> None:
    store = MemorySnapshotStore()

    assert store.auto_snapshot([], now=MORNING) is None
    assert store.list_all() == []


def test_json_snapshot_store_round_trip(tmp_path) -> None:
    path = tmp_path / "snapshots.json"
    saved = JsonSnapshotStore(path).save(_items(3), label="Month end", now=MORNING)

    loaded = JsonSnapshotStore(path).get(saved.id)

    assert loaded == saved


# ========== TRANSACTION LOG ==========


def test_transaction_queries() -> None:
    log = MemoryTransactionLog()
    log.append("A", -2, TransactionType.SALE, timestamp=MORNING)
    log.append("B", 5, TransactionType.RESTOCK, timestamp=MORNING + timedelta(days=1))
    log.append("A", -1, TransactionType.SALE, timestamp=MORNING + timedelta(days=2))

    assert [t.delta for t in log.get_all()] == [-2, 5, -1]
    assert [t.delta for t in log.get_by_item("A")] == [-2, -1]

    window = log.get_by_date_range(MORNING, MORNING + timedelta(days=1))
    assert [t.item_id for t in window] == ["A", "B"]


def test_delete_transaction() -> None:
    log = MemoryTransactionLog()
    transaction = log.append("A", -2, TransactionType.SALE, timestamp=MORNING)

    log.delete(transaction.id)

    assert log.get_all() == []
    with pytest.raises(NotFoundError):
        log.delete(transaction.id)


def test_json_transaction_log_persists(tmp_path) -> None:
    path = tmp_path / "transactions.json"
    JsonTransactionLog(path).append("A", 3, TransactionType.RETURN, note="damaged box", timestamp=MORNING)

    loaded = JsonTransactionLog(path).get_all()

    assert len(loaded) == 1
    assert loaded[0].type is TransactionType.RETURN
    assert loaded[0].note == "damaged box"
    assert loaded[0].timestamp == MORNING


def test_failed_write_leaves_records_unchanged() -> None:
    """A store that cannot persist a change keeps its previous state."""
    store = ReadOnlyRecordStore([{"itemId": "A", "quantity": 3}])

    with pytest.raises(StoreError):
        store.update("A", {"quantity": 5})
    with pytest.raises(StoreError):
        store.set("B", {"quantity": 1})
    with pytest.raises(StoreError):
        store.clear()

    assert store.get_all() == [{"itemId": "A", "quantity": 3}]


def test_failed_write_leaves_snapshots_unchanged() -> None:
    store = ReadOnlySnapshotStore()

    with pytest.raises(StoreError):
        store.save(_items(), now=MORNING)

    assert store.list_all() == []


def test_json_record_store_write_failure(tmp_path) -> None:
    path = tmp_path / "items.json"
    store = JsonRecordStore(path)
    store.set("A", {"quantity": 3})
    path.unlink()
    path.mkdir()

    with pytest.raises(StoreError, match="Could not write"):
        store.update("A", {"quantity": 5})

    assert store.get("A")["quantity"] == 3
