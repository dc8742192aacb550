"""
Record Mapper Module

Converts delivery records between the spreadsheet (display) layout and the
backend (wire) layout. Both directions go through the column table declared
on constants.schemas.DeliveryRecord; headers that are not in the table fall
back to a slug derived from the header text.
"""

import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from constants.schemas import DISPLAY_TO_WIRE, NUMERIC_COLUMNS, WIRE_TO_DISPLAY

logger = logging.getLogger(__name__)

Number = Union[int, float]


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and whitespace-only text."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any) -> str:
    """Render a cell as text the way it appears in the source spreadsheet."""
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        # pandas widens integer columns with gaps to float
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.strftime("%Y-%m-%d")
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def slugify_header(key: str) -> str:
    """Derive a backend column name from a spreadsheet header.

    Example: 'ORDER QTY. (YDS)' -> 'order_qty_yds'
    """
    slug = str(key).lower().strip()
    slug = re.sub(r"[\s./-]+", "_", slug)
    slug = re.sub(r"[()]", "", slug)
    slug = re.sub(r"_+", "_", slug)
    return re.sub(r"_$", "", slug)


def wire_key_for(display_key: str) -> str:
    """Backend column for a spreadsheet header, table first, slug second."""
    stripped = str(display_key).strip()
    if stripped in DISPLAY_TO_WIRE:
        return DISPLAY_TO_WIRE[stripped]
    return slugify_header(stripped)


def coerce_numeric(value: Any) -> Optional[Number]:
    """Parse a quantity cell, dropping thousands separators.

    Returns None (never 0 or NaN) when the cell is empty or not a number.
    """
    if is_blank(value) or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = str(value).replace(",", "").strip()
        try:
            number = float(cleaned)
        except ValueError:
            return None

    if not math.isfinite(number):
        return None
    if number.is_integer():
        return int(number)
    return number


def coerce_text(value: Any) -> str:
    return cell_text(value).strip()


def to_wire(display_row: Dict[str, Any]) -> Dict[str, Any]:
    """Map a display row to a backend row ready for insert."""
    wire_row = {}
    for key, value in display_row.items():
        if key == "id":
            continue
        wire_key = wire_key_for(key)
        if wire_key in NUMERIC_COLUMNS:
            wire_row[wire_key] = coerce_numeric(value)
        else:
            wire_row[wire_key] = coerce_text(value)
    return wire_row


def to_display(wire_row: Dict[str, Any]) -> Dict[str, Any]:
    """Map a backend row to display keys; unknown columns pass through unchanged."""
    display_row = {}
    for key, value in wire_row.items():
        display_row[WIRE_TO_DISPLAY.get(key, key)] = value
    return display_row


def frame_to_rows(df: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    """Convert a DataFrame to a list of plain dicts with NaN replaced by None."""
    if df is None or df.empty:
        return []
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cleaned.to_dict(orient="records")
