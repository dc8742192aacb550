"""
Session Controller Module

Owns the dashboard state: the record set on screen, the staged (pending)
upload, the current screen and the admin login flag. The Streamlit app and
the FastAPI endpoints both drive the report through a ReportSession.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

import pandas as pd

from constants.data_models import VIEW_ADMIN, VIEW_REPORT
from constants.schemas import SCHEMA_ERROR_CODES
from utils.import_parsers import ImportParseError, fetch_sheet_csv, read_report_file
from utils.local_cache import LocalCacheStore
from utils.record_mapper import frame_to_rows
from utils.settings_store import (
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    BackendConfig,
    SettingsStore,
)
from utils.supabase_gateway import RemoteError, SupabaseGateway

logger = logging.getLogger(__name__)

STATUS_INFO = "info"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@dataclass
class StatusMessage:
    """Feedback shown on the admin screen."""

    type: str
    message: str
    code: Optional[str] = None

    @property
    def needs_schema_setup(self) -> bool:
        return self.type == STATUS_ERROR and self.code in SCHEMA_ERROR_CODES


class ReportSession:
    def __init__(
        self,
        settings: Optional[SettingsStore] = None,
        cache: Optional[LocalCacheStore] = None,
        gateway_factory: Callable[[BackendConfig], Any] = SupabaseGateway,
    ):
        self.settings = settings or SettingsStore()
        self.cache = cache or LocalCacheStore()
        self.gateway_factory = gateway_factory
        self.config = self.settings.load_backend_config()

        self.view = VIEW_REPORT
        self.is_logged_in = False
        self.is_loading = True
        self.is_syncing = False
        self.records = pd.DataFrame()
        self.pending_records: Optional[pd.DataFrame] = None
        self.fetch_error: Optional[str] = None
        self.status: Optional[StatusMessage] = None

        self._gateway = None
        self._generation = 0
        self._lock = threading.Lock()

    # --- gateway ---

    @property
    def gateway(self):
        """Gateway for the current config, built on first use."""
        with self._lock:
            if self._gateway is None:
                self._gateway = self.gateway_factory(self.config)
            return self._gateway

    def _reset_gateway(self) -> None:
        with self._lock:
            old_gateway, self._gateway = self._gateway, None
        if old_gateway is not None and hasattr(old_gateway, "close"):
            old_gateway.close()

    def update_config(self, url: str, key: str) -> BackendConfig:
        """Persist a new backend target; the next call uses a fresh gateway."""
        self.config = self.settings.save_backend_config(url, key)
        self._reset_gateway()
        logger.info(f"Backend target set to {self.config.url}")
        return self.config

    def test_connection(self) -> StatusMessage:
        self.status = StatusMessage(STATUS_INFO, "Testing Supabase...")
        try:
            count = self.gateway.count_records()
        except RemoteError as e:
            logger.warning(f"Connection test failed: {e}")
            self.status = StatusMessage(STATUS_ERROR, e.message, e.code)
        else:
            self.status = StatusMessage(
                STATUS_SUCCESS, f"Connected! Database structure verified ({count} records)."
            )
        return self.status

    # --- loading ---

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    @property
    def has_records(self) -> bool:
        return self.records is not None and not self.records.empty

    def load_records(self) -> bool:
        """
        Fetch the full record set, falling back to the local cache on failure.

        A load started later supersedes this one; a superseded load leaves the
        session untouched.

        Returns:
            bool: False when the result was discarded as stale
        """
        generation = self._next_generation()
        self.is_syncing = True
        self.fetch_error = None

        try:
            rows = self.gateway.fetch_all()
        except RemoteError as e:
            if not self._is_current(generation):
                logger.info("Discarding failed load superseded by a newer request")
                return False
            logger.warning(f"Supabase fetch failed: {e}")
            self.fetch_error = str(e)
            if not self.has_records:
                cached = self.cache.load_all()
                if not cached.empty:
                    logger.info(f"Showing {len(cached)} cached records")
                    self.records = cached
        else:
            if not self._is_current(generation):
                logger.info("Discarding load superseded by a newer request")
                return False
            self.records = pd.DataFrame(rows)
            self.cache.save_all(self.records)
        finally:
            if self._is_current(generation):
                self.is_loading = False
                self.is_syncing = False

        return True

    def refresh(self) -> bool:
        return self.load_records()

    # --- screens & login ---

    def set_view(self, view: str) -> None:
        if view not in (VIEW_REPORT, VIEW_ADMIN):
            raise ValueError(f"Unknown view: {view}")
        if self.view == VIEW_ADMIN and view != VIEW_ADMIN:
            self.logout()
        self.view = view

    def login(self, username: str, password: str) -> bool:
        self.is_logged_in = username == ADMIN_USERNAME and password == ADMIN_PASSWORD
        if not self.is_logged_in:
            logger.info("Rejected admin login attempt")
        return self.is_logged_in

    def logout(self) -> None:
        self.is_logged_in = False
        self.pending_records = None
        self.status = None

    # --- admin upload ---

    def _stage(self, records: pd.DataFrame, source: str) -> pd.DataFrame:
        self.pending_records = records
        self.status = StatusMessage(STATUS_INFO, f"{len(records)} records {source}.")
        return records

    def stage_file(self, uploaded_file: Any, file_name: Optional[str] = None) -> pd.DataFrame:
        """Parse an uploaded file into the pending set. Raises ImportParseError."""
        try:
            records = read_report_file(uploaded_file, file_name)
        except ImportParseError as e:
            self.status = StatusMessage(STATUS_ERROR, str(e))
            raise
        return self._stage(records, "ready for sync")

    def stage_sheet(self, url: str) -> pd.DataFrame:
        """Fetch a sheet CSV into the pending set. Raises ImportParseError."""
        self.settings.set_sheet_url(url)
        try:
            records = fetch_sheet_csv(url)
        except ImportParseError as e:
            self.status = StatusMessage(STATUS_ERROR, str(e))
            raise
        return self._stage(records, "fetched from Google Sheets")

    def cancel_pending(self) -> None:
        self.pending_records = None
        self.status = None

    def commit_pending(self) -> int:
        """
        Overwrite the remote table with the pending set, then show and cache it.

        Raises:
            RemoteError: the remote table may be empty or partially written
        """
        if self.pending_records is None:
            return 0

        records = self.pending_records
        self.status = StatusMessage(STATUS_INFO, "Syncing to cloud database...")
        try:
            inserted = self.gateway.replace_all(frame_to_rows(records))
        except RemoteError as e:
            logger.error(f"Cloud push failed: {e}")
            self.status = StatusMessage(STATUS_ERROR, str(e), e.code)
            raise

        # Newer than any load still in flight
        self._next_generation()
        self.is_loading = False
        self.is_syncing = False
        self.records = records
        self.cache.save_all(records)
        self.pending_records = None
        self.status = StatusMessage(STATUS_SUCCESS, "Sync complete! Cloud data updated.")
        logger.info(f"Pushed {inserted} records to Supabase")
        return inserted
