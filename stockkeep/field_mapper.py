import re
from enum import Enum
from typing import Mapping, Optional, Union


class CanonicalField(str, Enum):
    """The fixed set of fields an inventory feed can populate."""

    ITEM_ID = "item_id"
    DISPLAY_NAME = "display_name"
    QUANTITY = "quantity"
    UNIT = "unit"
    BATCH_NUMBER = "batch_number"
    PURITY = "purity"
    NET_WEIGHT = "net_weight"
    ORDERED_DATE = "ordered_date"
    ORDERED_QTY = "ordered_qty"
    VELOCITY = "velocity"
    NOTES = "notes"
    SUPPLIER = "supplier"
    LOCATION = "location"
    LABELED_COUNT = "labeled_count"
    HAS_ACTIVE_ORDER = "has_active_order"


# Ranked header aliases per field. The first alias is also the export header.
FIELD_ALIASES: dict[CanonicalField, list[str]] = {
    CanonicalField.ITEM_ID: ["Item ID", "Product", "Product ID", "ID"],
    CanonicalField.DISPLAY_NAME: ["Name", "SKU", "Display Name", "Product Name", "Item Name", "Title"],
    CanonicalField.QUANTITY: ["Quantity", "Qty", "On Hand", "Stock", "Available", "Amount"],
    CanonicalField.UNIT: ["Unit", "UOM", "Unit of Measure"],
    CanonicalField.BATCH_NUMBER: ["Batch Number", "Batch", "Batch #", "Lot Number", "Lot"],
    CanonicalField.PURITY: ["Purity", "Purity %", "Purity Percentage"],
    CanonicalField.NET_WEIGHT: ["Net Weight", "Size", "Weight", "Net Wt"],
    CanonicalField.ORDERED_DATE: ["Ordered Date", "Incoming Arrival", "Order Date", "Date Ordered"],
    CanonicalField.ORDERED_QTY: ["Ordered Qty", "Incoming Qty", "Order Quantity", "Qty Ordered"],
    CanonicalField.VELOCITY: ["Velocity", "Usage Rate", "Demand"],
    CanonicalField.NOTES: ["Notes", "Status", "Comments", "Remarks"],
    CanonicalField.SUPPLIER: ["Supplier", "Vendor", "Manufacturer", "Lab"],
    CanonicalField.LOCATION: ["Location", "Warehouse", "Storage", "Bin"],
    CanonicalField.LABELED_COUNT: ["Labeled Count", "Labeled", "Labels Applied"],
    CanonicalField.HAS_ACTIVE_ORDER: ["Active Order", "On Order"],
}

NUMERIC_FIELDS = (
    CanonicalField.QUANTITY,
    CanonicalField.ORDERED_QTY,
    CanonicalField.LABELED_COUNT,
)

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_TRUTHY = {"true", "yes", "y", "1", "on"}


def extract(row: Mapping[str, Optional[str]], field: CanonicalField) -> Optional[str]:
    """
    Returns the first non-empty value found under any alias of `field`.
    For each alias an exact header match is tried before a case-insensitive one,
    and earlier aliases win over later ones.
    """
    for alias in FIELD_ALIASES[field]:
        value = _clean(row.get(alias))
        if value is not None:
            return value

        folded = alias.lower()
        for header, candidate in row.items():
            if header is not None and header.lower() == folded:
                value = _clean(candidate)
                if value is not None:
                    return value
    return None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def parse_number(value: Optional[Union[str, int, float]]) -> Union[int, float]:
    """
    Strips every character that is not a digit, '.' or '-' and parses the rest.
    Absent or unparsable input gives 0; this never raises.
    """
    if value is None:
        return 0

    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    if not cleaned:
        return 0
    try:
        number = float(cleaned)
    except ValueError:
        return 0

    if number.is_integer():
        return int(number)
    return number


def parse_flag(value: Optional[str]) -> bool:
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def export_headers() -> dict[CanonicalField, str]:
    """The inverse mapping: the preferred header for every canonical field."""
    return {field: aliases[0] for field, aliases in FIELD_ALIASES.items()}
