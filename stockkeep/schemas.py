from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Item(BaseModel):
    """
    The canonical inventory record. Aliases are the camelCase keys used when the
    record is stored as JSON; `item_id` is the identity and never changes.
    """

    item_id: str = Field(..., min_length=1, alias="itemId")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    quantity: int = 0
    labeled_count: int = Field(default=0, alias="labeledCount")
    unit: Optional[str] = None
    batch_number: Optional[str] = Field(default=None, alias="batchNumber")
    purity: Optional[str] = None
    net_weight: Optional[str] = Field(default=None, alias="netWeight")
    velocity: Optional[str] = None
    ordered_qty: int = Field(default=0, alias="orderedQty")
    ordered_date: Optional[str] = Field(default=None, alias="orderedDate")
    notes: Optional[str] = None
    supplier: Optional[str] = None
    location: Optional[str] = None
    has_active_order: bool = Field(default=False, alias="hasActiveOrder")
    imported_at: Optional[str] = Field(default=None, alias="importedAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    row_number: Optional[int] = Field(default=None, alias="rowNumber")

    class Config:
        populate_by_name = True

    def to_record(self) -> dict:
        """Store representation: camelCase keys, absent fields left out."""
        return self.model_dump(by_alias=True, exclude_none=True)


class StockThresholds(BaseModel):
    """Four ascending cut points used to classify stock urgency."""

    out_of_stock: int = Field(default=0, alias="outOfStock")
    nearly_out: int = Field(default=10, alias="nearlyOut")
    low_stock: int = Field(default=25, alias="lowStock")
    good_stock: int = Field(default=50, alias="goodStock")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def check_ascending(self):
        if not (self.out_of_stock <= self.nearly_out <= self.low_stock <= self.good_stock):
            raise ValueError(
                "Thresholds must ascend: outOfStock <= nearlyOut <= lowStock <= goodStock"
            )
        return self


class InventoryConfig(BaseModel):
    """Explicit configuration passed into every pipeline call."""

    exclusions: list[str] = Field(default_factory=list)
    thresholds: StockThresholds = Field(default_factory=StockThresholds)
    default_unit: str = Field(default="mg", alias="defaultUnit")
    diff_row_limit: int = Field(default=1000, ge=1, alias="diffRowLimit")

    class Config:
        populate_by_name = True


class Snapshot(BaseModel):
    """Immutable, timestamped copy of the full item set."""

    id: str
    label: str
    timestamp: datetime
    item_count: int = Field(..., ge=0, alias="itemCount")
    items: tuple[Item, ...] = ()
    auto: bool = False

    class Config:
        frozen = True
        populate_by_name = True


class TransactionType(str, Enum):
    SALE = "sale"
    RESTOCK = "restock"
    ADJUSTMENT = "adjustment"
    RETURN = "return"


class Transaction(BaseModel):
    """Append-only audit entry for one quantity change."""

    id: str
    item_id: str = Field(..., alias="itemId")
    delta: int
    type: TransactionType
    timestamp: datetime
    note: str = ""

    class Config:
        frozen = True
        populate_by_name = True


class ParseMeta(BaseModel):
    total_rows: int = Field(default=0, alias="totalRows")
    valid_rows: int = Field(default=0, alias="validRows")
    excluded_rows: int = Field(default=0, alias="excludedRows")
    skipped_rows: int = Field(default=0, alias="skippedRows")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class ParseResult(BaseModel):
    items: list[Item]
    meta: ParseMeta


class MergeMode(str, Enum):
    REPLACE = "replace"
    UPDATE = "update"


class MergeResult(BaseModel):
    mode: MergeMode
    imported: int = 0
    updated: int = 0
    failed: int = 0
    failures: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.imported + self.updated


class ImportOutcome(BaseModel):
    """What an ingestion run reports back: outcome plus enough detail to decide on a retry."""

    success: bool
    meta: Optional[ParseMeta] = None
    merge: Optional[MergeResult] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    snapshot_id: Optional[str] = None


class DiffType(str, Enum):
    NEW = "new"
    REMOVED = "removed"
    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"


class DiffRow(BaseModel):
    """One item's movement between two snapshots. Aliases double as report headers."""

    item_id: str = Field(..., alias="Item ID")
    name: str = Field(default="", alias="Name")
    old_qty: Optional[int] = Field(default=None, alias="Old Qty")
    new_qty: Optional[int] = Field(default=None, alias="New Qty")
    change: int = Field(..., alias="Change")
    type: DiffType = Field(..., alias="Type")

    class Config:
        populate_by_name = True


class DiffSummary(BaseModel):
    decreased: int = 0
    increased: int = 0
    new: int = 0
    removed: int = 0
    unchanged: int = 0
    total_sold: int = Field(default=0, alias="totalSold")
    total_added: int = Field(default=0, alias="totalAdded")

    class Config:
        populate_by_name = True


class SnapshotDiff(BaseModel):
    older: Snapshot
    newer: Snapshot
    rows: list[DiffRow]
    summary: DiffSummary


class TrendRow(BaseModel):
    """Sparse per-item quantity series across several snapshots."""

    item_id: str = Field(..., alias="Item ID")
    display_name: str = Field(default="", alias="Name")
    quantities: list[Optional[int]] = Field(default_factory=list, alias="Quantities")
    first_qty: Optional[int] = Field(default=None, alias="First Qty")
    last_qty: Optional[int] = Field(default=None, alias="Last Qty")
    total_change: int = Field(default=0, alias="Total Change")

    class Config:
        populate_by_name = True
