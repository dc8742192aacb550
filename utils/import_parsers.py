"""
Import Parsers Module

Turns an uploaded report workbook/CSV, or a Google Sheets CSV export URL, into
a DataFrame of display rows (first row is the header line). Nothing is written
to the database here; the result is staged until an admin confirms it.
"""

import io
import logging
import re
from typing import Any, Optional

import pandas as pd
import requests

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".csv")

GOOGLE_SHEET_URL_PATTERN = re.compile(
    r"^https://docs\.google\.com/spreadsheets/d/(?P<sheet_id>[A-Za-z0-9_-]+)(?P<rest>.*)$"
)


class ImportParseError(Exception):
    """Raised when an uploaded file or a sheet URL cannot be turned into rows."""


def _read_bytes(uploaded_file: Any) -> bytes:
    if isinstance(uploaded_file, (bytes, bytearray)):
        return bytes(uploaded_file)
    if hasattr(uploaded_file, "getvalue"):
        return uploaded_file.getvalue()
    if hasattr(uploaded_file, "read"):
        return uploaded_file.read()
    raise ImportParseError(f"Unsupported upload object: {type(uploaded_file).__name__}")


def clean_import_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Strip header names and drop blank rows and unnamed blank columns."""
    df = df.copy()
    df.columns = [str(col).strip() for col in df.columns]

    # Identify filler columns the spreadsheet export adds past the last header
    unnamed_cols = [
        col for col in df.columns if col.startswith("Unnamed:") and df[col].isna().all()
    ]
    if unnamed_cols:
        df = df.drop(columns=unnamed_cols)
        logger.info(f"Dropped {len(unnamed_cols)} empty unnamed columns")

    blank = df.apply(lambda col: col.map(lambda v: isinstance(v, str) and not v.strip()))
    df = df[~(df.isna() | blank).all(axis=1)]
    return df.reset_index(drop=True)


def read_report_file(uploaded_file: Any, file_name: Optional[str] = None) -> pd.DataFrame:
    """Decode the first sheet of a workbook, or a CSV file, into display rows.

    Args:
        uploaded_file: Streamlit UploadedFile, file-like object or raw bytes
        file_name: overrides uploaded_file.name when deciding the format

    Returns:
        pandas.DataFrame: one row per record, columns are the spreadsheet headers
    """
    name = (file_name or getattr(uploaded_file, "name", "") or "").lower()
    if name and not name.endswith(SUPPORTED_EXTENSIONS):
        raise ImportParseError(
            f"Unsupported file type '{name}'. Upload an Excel (.xlsx) or CSV file."
        )

    try:
        data = _read_bytes(uploaded_file)
        if name.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(data))
        else:
            df = pd.read_excel(io.BytesIO(data), sheet_name=0)
    except ImportParseError:
        raise
    except Exception as e:
        logger.error(f"Failed to parse report file {name!r}: {e}")
        raise ImportParseError(f"Failed to parse report file: {e}") from e

    df = clean_import_frame(df)
    logger.info(f"Parsed {len(df)} records from {name or 'upload'}")
    return df


def to_csv_export_url(url: str) -> str:
    """Rewrite a Google Sheets edit link to its CSV export link.

    Published links ('.../pub?output=csv') and other URLs are returned unchanged.
    """
    url = url.strip()
    match = GOOGLE_SHEET_URL_PATTERN.match(url)
    if not match or "/export" in match.group("rest") or "/pub" in match.group("rest"):
        return url

    gid_match = re.search(r"gid=(\d+)", match.group("rest"))
    export_url = f"https://docs.google.com/spreadsheets/d/{match.group('sheet_id')}/export?format=csv"
    if gid_match:
        export_url += f"&gid={gid_match.group(1)}"
    return export_url


def fetch_sheet_csv(
    url: str, session: Optional[requests.Session] = None, timeout: float = 60
) -> pd.DataFrame:
    """Download CSV text from a URL and parse it with numeric type inference."""
    if not url or not url.strip():
        raise ImportParseError("Enter a Google Sheets CSV export URL first.")

    export_url = to_csv_export_url(url)
    http = session or requests
    try:
        logger.info(f"Fetching sheet CSV from {export_url}")
        response = http.get(export_url, timeout=timeout)
        response.raise_for_status()
        df = pd.read_csv(io.StringIO(response.text))
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to fetch sheet CSV: {e}")
        raise ImportParseError(f"Failed to fetch from Google Sheets URL: {e}") from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        logger.error(f"Failed to parse sheet CSV: {e}")
        raise ImportParseError(f"Failed to parse Google Sheets data: {e}") from e

    df = clean_import_frame(df)
    logger.info(f"Fetched {len(df)} records from sheet")
    return df
