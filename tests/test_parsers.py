"""Tests for inventory feed parsing and row validation."""

import pytest

from stockkeep.data_handler import export_items_csv
from stockkeep.exceptions import ValidationError
from stockkeep.parsers import build_record, parse_inventory, read_table, validate_items
from stockkeep.schemas import Item

FEED = """Item ID,Name,Quantity,Unit,Batch Number,Purity
BPC-157-5MG,BPC-157,150,mg,B-1,99.1
TB-500-10MG,TB-500,"1,200",,B-2,
OATH-GIFT-CARD,Gift Card,1,,,
,,,,,
GHK-CU-50MG,,-3,,,
"""

IMPORTED_AT = "2024-01-01T00:00:00+00:00"


def _parse(text: str, exclusions=("gift card",), **kwargs):
    return parse_inventory(text, list(exclusions), imported_at=IMPORTED_AT, **kwargs)


def test_read_table_trims_headers() -> None:
    rows = read_table(" Item ID , Qty \nA,1\n")

    assert rows == [{"Item ID": "A", "Qty": "1"}]


def test_read_table_empty_text() -> None:
    assert read_table("") == []
    assert read_table("   \n") == []


def test_parse_counts_rows() -> None:
    """Blank rows are skipped and excluded rows counted separately."""
    result = _parse(FEED)

    assert [item.item_id for item in result.items] == ["BPC-157-5MG", "TB-500-10MG", "GHK-CU-50MG"]
    assert result.meta.total_rows == 5
    assert result.meta.valid_rows == 3
    assert result.meta.excluded_rows == 1
    assert result.meta.skipped_rows == 1
    assert result.meta.errors == []


def test_parse_coerces_fields() -> None:
    items = {item.item_id: item for item in _parse(FEED).items}

    assert items["BPC-157-5MG"].quantity == 150
    assert items["BPC-157-5MG"].purity == "99.1"
    assert items["TB-500-10MG"].quantity == 1200
    assert items["TB-500-10MG"].purity is None
    assert items["GHK-CU-50MG"].quantity == -3


def test_parse_defaults_unit() -> None:
    items = {item.item_id: item for item in _parse(FEED, default_unit="vial").items}

    assert items["BPC-157-5MG"].unit == "mg"
    assert items["TB-500-10MG"].unit == "vial"


def test_parse_stamps_import_time_and_row_number() -> None:
    items = _parse(FEED).items

    assert {item.imported_at for item in items} == {IMPORTED_AT}
    assert [item.row_number for item in items] == [1, 2, 5]


def test_missing_display_name_is_a_warning() -> None:
    result = _parse(FEED)

    assert "Row 5: Missing display name" in result.meta.warnings


def test_missing_quantity_defaults_to_zero_with_warning() -> None:
    result = _parse("Item ID,Name\nBPC-157-5MG,BPC-157\n")

    assert result.items[0].quantity == 0
    assert "Row 1: Missing quantity, defaulting to 0" in result.meta.warnings


def test_missing_item_ids_collects_every_error() -> None:
    """All row-level errors are reported at once, not just the first."""
    text = "Item ID,Name,Quantity\n,First,1\nB,Second,2\n,Third,3\n"

    with pytest.raises(ValidationError, match="Missing item ID") as excinfo:
        _parse(text)

    assert excinfo.value.errors == ["Row 1: Missing item ID", "Row 3: Missing item ID"]


def test_fractional_quantity_is_truncated_with_warning() -> None:
    """A fractional cell does not block the rest of the feed."""
    result = _parse("Item ID,Name,Quantity\nA,Alpha,10\nB,Beta,2.5\nC,Gamma,-1.5\n")

    assert [(item.item_id, item.quantity) for item in result.items] == [("A", 10), ("B", 2), ("C", -1)]
    assert "Row 2: Quantity 2.5 truncated to 2" in result.meta.warnings
    assert "Row 3: Quantity -1.5 truncated to -1" in result.meta.warnings
    assert result.meta.errors == []


def test_all_rows_excluded_is_an_error() -> None:
    with pytest.raises(ValidationError) as excinfo:
        _parse("Item ID,Name,Quantity\nOATH-GIFT-CARD,Gift Card,1\n")

    assert excinfo.value.errors == ["No inventory rows found"]


def test_empty_feed_is_an_error() -> None:
    with pytest.raises(ValidationError, match="No inventory rows found"):
        _parse("")


def test_duplicate_item_id_is_a_warning() -> None:
    result = _parse("Item ID,Name,Quantity\nA,Alpha,1\nA,Alpha,2\n")

    assert "Row 2: Duplicate item ID A, later row wins" in result.meta.warnings
    assert len(result.items) == 2


def test_alias_headers_and_flags() -> None:
    text = "product id,Product Name, qty ,On Order,Lot\nBPC-157-5MG,BPC-157,40,yes,L-9\n"

    item = _parse(text).items[0]

    assert item.item_id == "BPC-157-5MG"
    assert item.display_name == "BPC-157"
    assert item.quantity == 40
    assert item.has_active_order is True
    assert item.batch_number == "L-9"


def test_parse_accepts_row_dicts() -> None:
    rows = [{"Item ID": "A", "Quantity": "3"}, {"Item ID": "B", "Quantity": "4"}]

    result = parse_inventory(rows, [])

    assert [(item.item_id, item.quantity) for item in result.items] == [("A", 3), ("B", 4)]


def test_build_record_drops_absent_text_fields() -> None:
    record = build_record({"Item ID": "A", "Quantity": "1"}, 1, "mg", IMPORTED_AT)

    assert "batch_number" not in record
    assert "notes" not in record
    assert record["ordered_qty"] == 0
    assert record["labeled_count"] == 0
    assert record["unit"] == "mg"


def test_validate_items_rejects_non_numeric() -> None:
    """Hand-built records that bypass coercion are still checked."""
    errors, _ = validate_items([{"item_id": "A", "display_name": "Alpha", "quantity": "abc"}])

    assert errors == ["Row 1: Quantity must be a number"]


def test_validate_items_empty() -> None:
    errors, warnings = validate_items([])

    assert errors == ["No inventory rows found"]
    assert warnings == []


def test_exported_csv_reimports_to_same_items() -> None:
    """Items written through the inverse mapping parse back unchanged."""
    items = [
        Item(
            item_id="BPC-157-5MG",
            display_name="BPC-157",
            quantity=150,
            unit="mg",
            batch_number="B-1",
            purity="99.1",
            net_weight="5mg",
            labeled_count=4,
            ordered_qty=20,
            ordered_date="2024-02-01",
            has_active_order=True,
            notes="front shelf, top row",
            supplier="Lab A",
        ),
        Item(item_id="TB-500-10MG", quantity=-2, unit="vial"),
    ]

    parsed = parse_inventory(export_items_csv(items), []).items

    ignored = {"imported_at", "updated_at", "row_number"}
    assert [item.model_dump(exclude=ignored) for item in parsed] == [
        item.model_dump(exclude=ignored) for item in items
    ]


def test_product_and_sku_headers() -> None:
    """Feeds keyed by Product carry the display name under SKU."""
    result = _parse("Product,SKU,Quantity\nOATH-BPC-157,BPC-157 10mg,5\n")

    item = result.items[0]
    assert item.item_id == "OATH-BPC-157"
    assert item.display_name == "BPC-157 10mg"
    assert item.quantity == 5
    assert not any("Missing display name" in warning for warning in result.meta.warnings)


def test_validate_items_fractional_value_is_a_warning() -> None:
    errors, warnings = validate_items([{"item_id": "A", "display_name": "Alpha", "quantity": 2.5}])

    assert errors == []
    assert warnings == ["Row 1: Quantity 2.5 is not a whole number"]
