"""
Local Cache Module

Keeps the last record set fetched from (or pushed to) Supabase on disk so the
report can still be shown when the database is unreachable.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import pandas as pd

from utils.record_mapper import frame_to_rows
from utils.settings_store import get_data_dir

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "records_cache.json"


class LocalCacheStore:
    """Whole-set cache: every save replaces the previous contents."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_data_dir() / CACHE_FILE_NAME

    def save_all(self, records: pd.DataFrame) -> bool:
        """Replace the cached record set. Returns False if the write failed."""
        rows = frame_to_rows(records)
        columns = [str(col) for col in records.columns] if records is not None else []
        payload = {"columns": columns, "records": rows}

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix="records_", suffix=".json.tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, default=str)
            os.replace(tmp_path, self.path)
            logger.info(f"Cached {len(rows)} records to {self.path}")
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to cache records locally: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            return False

    def load_all(self) -> pd.DataFrame:
        """Return the cached records, or an empty DataFrame when nothing usable is cached."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError:
            return pd.DataFrame()
        except (OSError, ValueError) as e:
            logger.warning(f"Local cache unavailable: {e}")
            return pd.DataFrame()

        if not isinstance(payload, dict) or not isinstance(payload.get("records"), list):
            logger.warning(f"Ignoring malformed cache file {self.path}")
            return pd.DataFrame()

        try:
            records = pd.DataFrame(payload["records"])
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return pd.DataFrame()
        columns = [col for col in payload.get("columns", []) if col in records.columns]
        if columns:
            records = records[columns]
        logger.info(f"Loaded {len(records)} records from local cache")
        return records
