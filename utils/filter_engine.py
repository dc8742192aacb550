import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from constants.data_models import DELIVERY_DATE_FIELD, FILTER_FIELDS
from utils.record_mapper import cell_text, is_blank

logger = logging.getLogger(__name__)

# Spreadsheet serial 25569 is 1970-01-01
SERIAL_UNIX_EPOCH_OFFSET = 25569
UNIX_EPOCH = datetime(1970, 1, 1)

DateBound = Union[date, datetime, str, None]


def parse_report_date(value: Any) -> Optional[datetime]:
    """Parse a report date cell.

    Numbers (and numeric text) are spreadsheet serial days; anything else is
    parsed as calendar text. Returns None when the value cannot be read.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value
        return pd.Timestamp(value).tz_convert("UTC").tz_localize(None).to_pydatetime()
    if isinstance(value, date):
        return datetime.combine(value, time.min)

    text = str(value).strip()
    try:
        serial = float(text)
    except ValueError:
        serial = None

    if serial is not None:
        if not math.isfinite(serial):
            return None
        try:
            return UNIX_EPOCH + timedelta(days=serial - SERIAL_UNIX_EPOCH_OFFSET)
        except OverflowError:
            return None

    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)
    return parsed.to_pydatetime()


def _lower_bound(value: DateBound) -> Optional[datetime]:
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return parse_report_date(value)


def _upper_bound(value: DateBound) -> Optional[datetime]:
    """The given calendar day, up to its last millisecond."""
    start = _lower_bound(value)
    if start is None:
        return None
    return datetime.combine(start.date(), time(23, 59, 59, 999000))


def has_active_filters(
    text_filters: Optional[Dict[str, str]] = None,
    date_from: DateBound = None,
    date_to: DateBound = None,
) -> bool:
    return (
        any(not is_blank(v) for v in (text_filters or {}).values())
        or not is_blank(date_from)
        or not is_blank(date_to)
    )


def apply_filters(
    records: pd.DataFrame,
    text_filters: Optional[Dict[str, str]] = None,
    date_from: DateBound = None,
    date_to: DateBound = None,
    date_field: str = DELIVERY_DATE_FIELD,
) -> pd.DataFrame:
    """Filter records by case-insensitive substrings and an inclusive delivery date range.

    Args:
        records: display rows
        text_filters: display key -> substring; empty values are ignored
        date_from: inclusive lower bound
        date_to: inclusive upper bound (whole day)
        date_field: column holding the date to range-check

    Returns:
        pandas.DataFrame: a new frame with the matching rows in input order
    """
    if records is None or records.empty:
        return pd.DataFrame() if records is None else records.copy()

    mask = pd.Series(True, index=records.index)

    for field, needle in (text_filters or {}).items():
        if is_blank(needle):
            continue
        if field not in records.columns:
            # a missing column reads as empty text, which never contains a non-empty needle
            mask &= False
            continue
        haystack = records[field].map(cell_text).str.lower()
        mask &= haystack.str.contains(str(needle).strip().lower(), regex=False)

    lower = _lower_bound(date_from)
    upper = _upper_bound(date_to)
    if lower is not None or upper is not None:
        if date_field not in records.columns:
            mask &= False
        else:
            mask &= records[date_field].map(lambda v: _in_date_range(v, lower, upper))

    filtered = records.loc[mask].copy()
    logger.debug(f"Filtered {len(records)} records down to {len(filtered)}")
    return filtered


def _in_date_range(value: Any, lower: Optional[datetime], upper: Optional[datetime]) -> bool:
    if not cell_text(value):
        return False

    record_date = parse_report_date(value)
    if record_date is None:
        # unreadable dates are kept rather than hidden
        return True

    if lower is not None and record_date < lower:
        return False
    if upper is not None and record_date > upper:
        return False
    return True


def unique_values(records: pd.DataFrame, field: str) -> List[str]:
    """Sorted distinct non-empty values of a column (filter dropdown options)."""
    if records is None or field not in getattr(records, "columns", []):
        return []
    values = {cell_text(v).strip() for v in records[field]}
    values.discard("")
    return sorted(values)


def empty_text_filters() -> Dict[str, str]:
    return {field: "" for field in FILTER_FIELDS}
