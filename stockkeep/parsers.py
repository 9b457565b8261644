import io
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import pandas as pd
from pydantic import ValidationError as SchemaValidationError

from .exceptions import ValidationError
from .exclusions import ExclusionMatcher, compile_exclusions
from .field_mapper import NUMERIC_FIELDS, CanonicalField, extract, parse_flag, parse_number
from .schemas import Item, ParseMeta, ParseResult
from .utils import now_iso

logger = logging.getLogger(__name__)

RawTable = Union[str, Iterable[Mapping[str, Any]]]

_FIELD_LABELS = {
    CanonicalField.QUANTITY: "Quantity",
    CanonicalField.ORDERED_QTY: "Ordered quantity",
    CanonicalField.LABELED_COUNT: "Labeled count",
}


def read_table(raw_text: str) -> list[dict[str, str]]:
    """
    Reads header-driven delimited text into a list of row dicts.
    Every cell is kept as a string; header whitespace is trimmed.
    """
    if not raw_text or not raw_text.strip():
        return []

    try:
        df = pd.read_csv(
            io.StringIO(raw_text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
        )
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as e:
        raise ValidationError([f"Could not read table: {e}"]) from e

    df.columns = [str(col).strip() for col in df.columns]
    df = df.fillna("")
    return df.to_dict("records")


def _is_blank_row(row: Mapping[str, Any]) -> bool:
    return all(value is None or str(value).strip() == "" for value in row.values())


def build_record(
    row: Mapping[str, Any], row_number: int, default_unit: str, imported_at: str
) -> dict[str, Any]:
    """
    Maps one raw row onto the canonical record shape.
    Numeric fields always end up numeric (0 when absent); absent text fields are
    dropped so a partial record never overwrites good data with nulls.
    """
    record: dict[str, Any] = {}
    for field in CanonicalField:
        value = extract(row, field)
        if field in NUMERIC_FIELDS:
            record[field.value] = parse_number(value)
        elif field is CanonicalField.HAS_ACTIVE_ORDER:
            record[field.value] = parse_flag(value)
        else:
            record[field.value] = value

    record[CanonicalField.UNIT.value] = record[CanonicalField.UNIT.value] or default_unit
    record["imported_at"] = imported_at
    record["row_number"] = row_number

    return {key: value for key, value in record.items() if value is not None}


def transform_rows(
    rows: Sequence[Mapping[str, Any]],
    exclusions: ExclusionMatcher,
    default_unit: str,
    imported_at: Optional[str] = None,
) -> tuple[list[dict[str, Any]], ParseMeta]:
    """Drops blank and excluded rows and builds canonical records for the rest."""
    imported_at = imported_at or now_iso()
    meta = ParseMeta(total_rows=len(rows))
    records = []

    for index, row in enumerate(rows):
        row_number = index + 1
        if not row or _is_blank_row(row):
            meta.skipped_rows += 1
            continue

        item_id = extract(row, CanonicalField.ITEM_ID)
        display_name = extract(row, CanonicalField.DISPLAY_NAME)
        if exclusions.test(item_id, display_name):
            meta.excluded_rows += 1
            continue

        if extract(row, CanonicalField.QUANTITY) is None:
            meta.warnings.append(f"Row {row_number}: Missing quantity, defaulting to 0")

        record = build_record(row, row_number, default_unit, imported_at)
        for field in NUMERIC_FIELDS:
            value = record[field.value]
            if isinstance(value, float):
                record[field.value] = int(value)
                meta.warnings.append(
                    f"Row {row_number}: {_FIELD_LABELS[field]} {value:g} truncated to {int(value)}"
                )
        records.append(record)

    return records, meta


def validate_items(records: Sequence[Mapping[str, Any]]) -> tuple[list[str], list[str]]:
    """
    Collects every row-level problem in one pass.
    Returns (errors, warnings); only errors block an import.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not records:
        errors.append("No inventory rows found")
        return errors, warnings

    seen_ids: set[str] = set()
    for index, record in enumerate(records):
        row_number = record.get("row_number", index + 1)

        item_id = record.get(CanonicalField.ITEM_ID.value)
        if not item_id:
            errors.append(f"Row {row_number}: Missing item ID")
        elif item_id in seen_ids:
            warnings.append(f"Row {row_number}: Duplicate item ID {item_id}, later row wins")
        else:
            seen_ids.add(item_id)

        if not record.get(CanonicalField.DISPLAY_NAME.value):
            warnings.append(f"Row {row_number}: Missing display name")

        # Hand-built records skip coercion.
        for field in NUMERIC_FIELDS:
            value = record.get(field.value, 0)
            label = _FIELD_LABELS[field]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"Row {row_number}: {label} must be a number")
            elif isinstance(value, float) and not value.is_integer():
                warnings.append(f"Row {row_number}: {label} {value:g} is not a whole number")

    return errors, warnings


def parse_inventory(
    raw_table: RawTable,
    exclusions: Union[ExclusionMatcher, Sequence[str], None] = None,
    *,
    default_unit: str = "mg",
    imported_at: Optional[str] = None,
) -> ParseResult:
    """
    Parses a raw inventory feed into canonical items.

    Raises ValidationError listing every row-level error when any row lacks an
    item ID or carries a non-numeric quantity. Missing names and quantities are
    reported as warnings only.
    """
    rows = read_table(raw_table) if isinstance(raw_table, str) else list(raw_table)
    matcher = exclusions if isinstance(exclusions, ExclusionMatcher) else compile_exclusions(exclusions)

    records, meta = transform_rows(rows, matcher, default_unit, imported_at)
    errors, warnings = validate_items(records)
    meta.warnings.extend(warnings)

    items: list[Item] = []
    if not errors:
        for record in records:
            try:
                items.append(Item.model_validate(record))
            except SchemaValidationError as e:
                errors.append(f"Row {record.get('row_number')}: {e.errors()[0]['msg']}")

    if errors:
        meta.errors.extend(errors)
        logger.error(f"❌ Validation failed with {len(errors)} error(s).")
        raise ValidationError(errors, meta.warnings)

    meta.valid_rows = len(items)
    logger.info(
        f"✅ Parsed {meta.valid_rows} of {meta.total_rows} rows "
        f"({meta.excluded_rows} excluded, {meta.skipped_rows} blank)."
    )
    return ParseResult(items=items, meta=meta)
