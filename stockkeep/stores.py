"""
Storage collaborators used by the reconciliation core.

The core only relies on the abstract contracts below. The in-memory versions
back the tests; the JSON versions persist to a single file per store and
rewrite it after every mutation.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from .exceptions import NotFoundError, StoreError
from .reconcile import capture_snapshot
from .schemas import Item, Snapshot, Transaction, TransactionType
from .utils import new_id, now_iso, now_utc

logger = logging.getLogger(__name__)


def _write_json(path: Path, payload: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)
    except OSError as e:
        raise StoreError(f"Could not write {path}: {e}") from e


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise StoreError(f"Could not read {path}: {e}") from e


# ========== RECORD STORE ==========


class RecordStore(ABC):
    """Key-value store of item records keyed by item ID."""

    @abstractmethod
    def get_all(self) -> list[dict]:
        pass

    @abstractmethod
    def get(self, item_id: str) -> Optional[dict]:
        pass

    @abstractmethod
    def set(self, item_id: str, record: dict) -> dict:
        pass

    @abstractmethod
    def update(self, item_id: str, partial: dict) -> dict:
        """Merges `partial` onto the existing record. Raises NotFoundError when absent."""
        pass

    @abstractmethod
    def delete(self, item_id: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def items(self) -> list[Item]:
        return [Item.model_validate(record) for record in self.get_all()]


class MemoryRecordStore(RecordStore):
    """
    In-memory record store. Every mutation builds the new record map, flushes
    it and only then replaces the current one, so a failed flush leaves the
    store unchanged.
    """

    def __init__(self, records: Optional[Iterable[dict]] = None):
        self._records: dict[str, dict] = {}
        for record in records or []:
            self._records[record["itemId"]] = dict(record)

    def _flush(self, records: dict[str, dict]) -> None:
        pass

    def _commit(self, records: dict[str, dict]) -> None:
        self._flush(records)
        self._records = records

    def get_all(self) -> list[dict]:
        return [dict(self._records[key]) for key in sorted(self._records)]

    def get(self, item_id: str) -> Optional[dict]:
        record = self._records.get(item_id)
        return dict(record) if record is not None else None

    def set(self, item_id: str, record: dict) -> dict:
        stored = {**record, "itemId": item_id, "updatedAt": now_iso()}
        self._commit({**self._records, item_id: stored})
        return dict(stored)

    def update(self, item_id: str, partial: dict) -> dict:
        existing = self._records.get(item_id)
        if existing is None:
            raise NotFoundError("Item", item_id)
        stored = {**existing, **partial, "itemId": item_id, "updatedAt": now_iso()}
        self._commit({**self._records, item_id: stored})
        return dict(stored)

    def delete(self, item_id: str) -> None:
        self._commit({key: value for key, value in self._records.items() if key != item_id})

    def clear(self) -> None:
        self._commit({})


class JsonRecordStore(MemoryRecordStore):
    def __init__(self, path: Path):
        self.path = path
        super().__init__(_read_json(path, []))

    def _flush(self, records: dict[str, dict]) -> None:
        _write_json(self.path, [records[key] for key in sorted(records)])


# ========== SNAPSHOT STORE ==========


class SnapshotStore(ABC):
    """Create/read/delete store of immutable snapshots."""

    @abstractmethod
    def add(self, snapshot: Snapshot) -> Snapshot:
        pass

    @abstractmethod
    def get(self, snapshot_id: str) -> Snapshot:
        """Raises NotFoundError for an unknown ID."""
        pass

    @abstractmethod
    def list_all(self) -> list[Snapshot]:
        """All snapshots, newest first."""
        pass

    @abstractmethod
    def delete(self, snapshot_id: str) -> None:
        pass

    def save(
        self,
        items: Iterable[Item],
        label: Optional[str] = None,
        auto: bool = False,
        now: Optional[datetime] = None,
    ) -> Snapshot:
        snapshot = capture_snapshot(items, label=label, auto=auto, now=now)
        logger.info(f"📸 Snapshot '{snapshot.label}' saved ({snapshot.item_count} items).")
        return self.add(snapshot)

    def auto_snapshot(self, items: Iterable[Item], now: Optional[datetime] = None) -> Optional[Snapshot]:
        """
        Takes an automatic snapshot unless one was already taken on the same
        calendar day. Returns None when skipped.
        """
        now = now or now_utc()
        items = list(items)
        if not items:
            return None

        today = now.date()
        for snapshot in self.list_all():
            taken_on = snapshot.timestamp.astimezone(now.tzinfo).date()
            if snapshot.auto and taken_on == today:
                logger.info("Automatic snapshot already taken today. Skipping.")
                return None

        return self.save(items, label=f"Auto {today.isoformat()}", auto=True, now=now)

    def latest(self, count: int = 2) -> list[Snapshot]:
        return self.list_all()[:count]


class MemorySnapshotStore(SnapshotStore):
    def __init__(self, snapshots: Optional[Iterable[Snapshot]] = None):
        self._snapshots: dict[str, Snapshot] = {s.id: s for s in snapshots or []}

    def _flush(self, snapshots: dict[str, Snapshot]) -> None:
        pass

    def _commit(self, snapshots: dict[str, Snapshot]) -> None:
        self._flush(snapshots)
        self._snapshots = snapshots

    def add(self, snapshot: Snapshot) -> Snapshot:
        self._commit({**self._snapshots, snapshot.id: snapshot})
        return snapshot

    def get(self, snapshot_id: str) -> Snapshot:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise NotFoundError("Snapshot", snapshot_id)
        return snapshot

    def list_all(self) -> list[Snapshot]:
        return _newest_first(self._snapshots.values())

    def delete(self, snapshot_id: str) -> None:
        if snapshot_id not in self._snapshots:
            raise NotFoundError("Snapshot", snapshot_id)
        self._commit({key: s for key, s in self._snapshots.items() if key != snapshot_id})


def _newest_first(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    return sorted(snapshots, key=lambda s: (s.timestamp, s.id), reverse=True)


class JsonSnapshotStore(MemorySnapshotStore):
    def __init__(self, path: Path):
        self.path = path
        raw = _read_json(path, [])
        super().__init__(Snapshot.model_validate(entry) for entry in raw)

    def _flush(self, snapshots: dict[str, Snapshot]) -> None:
        _write_json(
            self.path,
            [
                s.model_dump(mode="json", by_alias=True, exclude_none=True)
                for s in _newest_first(snapshots.values())
            ],
        )


# ========== TRANSACTION LOG ==========


class TransactionLog(ABC):
    """Append-only audit trail of quantity changes."""

    @abstractmethod
    def add(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    def get_all(self) -> list[Transaction]:
        """All transactions, oldest first."""
        pass

    @abstractmethod
    def delete(self, transaction_id: str) -> None:
        pass

    def append(
        self,
        item_id: str,
        delta: int,
        transaction_type: TransactionType,
        note: str = "",
        timestamp: Optional[datetime] = None,
    ) -> Transaction:
        transaction = Transaction(
            id=new_id(),
            item_id=item_id,
            delta=delta,
            type=transaction_type,
            timestamp=timestamp or now_utc(),
            note=note,
        )
        return self.add(transaction)

    def get_by_item(self, item_id: str) -> list[Transaction]:
        return [t for t in self.get_all() if t.item_id == item_id]

    def get_by_date_range(self, start: datetime, end: datetime) -> list[Transaction]:
        """Transactions with start <= timestamp <= end."""
        return [t for t in self.get_all() if start <= t.timestamp <= end]


class MemoryTransactionLog(TransactionLog):
    def __init__(self, transactions: Optional[Iterable[Transaction]] = None):
        self._transactions: dict[str, Transaction] = {t.id: t for t in transactions or []}

    def _flush(self, transactions: dict[str, Transaction]) -> None:
        pass

    def _commit(self, transactions: dict[str, Transaction]) -> None:
        self._flush(transactions)
        self._transactions = transactions

    def add(self, transaction: Transaction) -> Transaction:
        self._commit({**self._transactions, transaction.id: transaction})
        return transaction

    def get_all(self) -> list[Transaction]:
        return _oldest_first(self._transactions.values())

    def delete(self, transaction_id: str) -> None:
        if transaction_id not in self._transactions:
            raise NotFoundError("Transaction", transaction_id)
        self._commit({key: t for key, t in self._transactions.items() if key != transaction_id})


def _oldest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: (t.timestamp, t.id))


class JsonTransactionLog(MemoryTransactionLog):
    def __init__(self, path: Path):
        self.path = path
        raw = _read_json(path, [])
        super().__init__(Transaction.model_validate(entry) for entry in raw)

    def _flush(self, transactions: dict[str, Transaction]) -> None:
        _write_json(
            self.path,
            [t.model_dump(mode="json", by_alias=True) for t in _oldest_first(transactions.values())],
        )
