"""
Supabase Gateway Module

Reads and overwrites the delivery_records table through the Supabase
PostgREST API. Every failure, transport or query, is raised as RemoteError so
callers can show it and branch on its code.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from constants.schemas import SCHEMA_ERROR_CODES, TABLE_NAME
from utils.record_mapper import to_display, to_wire
from utils.settings_store import BackendConfig

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 40
FETCH_PAGE_SIZE = 1000


class RemoteError(Exception):
    """Uniform error shape for anything that goes wrong talking to Supabase."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.code = code
        self.hint = hint
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.code:
            parts.append(f"Code: {self.code}")
        return " | ".join(parts)

    @property
    def needs_schema_setup(self) -> bool:
        """True when the table or one of its columns is missing on the server."""
        return self.code in SCHEMA_ERROR_CODES

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "details": self.details, "code": self.code}

    @classmethod
    def from_response(cls, response: requests.Response) -> "RemoteError":
        """Build from a PostgREST error body ({message, details, hint, code})."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("message"):
            return cls(
                message=body["message"],
                details=body.get("details"),
                code=body.get("code"),
                hint=body.get("hint"),
                status_code=response.status_code,
            )

        text = (response.text or "").strip() or response.reason or "Unknown error"
        return cls(f"HTTP {response.status_code}: {text}", status_code=response.status_code)


class SupabaseGateway:
    """Gateway to one Supabase project. Rebuild it when the target changes."""

    def __init__(
        self,
        config: BackendConfig,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
        table_name: str = TABLE_NAME,
    ):
        self.config = config
        self.timeout = timeout
        self.table_name = table_name
        self.base_url = f"{config.url.rstrip('/')}/rest/v1"
        self.headers = {
            "apikey": config.key,
            "Authorization": f"Bearer {config.key}",
            "Content-Type": "application/json",
        }
        self._session = session

    @property
    def session(self) -> requests.Session:
        # One connection pool per gateway, created on first use
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(self.headers)
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def _request(
        self,
        method: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        url = f"{self.base_url}/{self.table_name}"
        request_headers = dict(self.headers)
        if headers:
            request_headers.update(headers)

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RemoteError(f"Failed to reach {self.config.url}: {e}") from e

        if not response.ok:
            raise RemoteError.from_response(response)
        return response

    def fetch_all(self) -> List[Dict[str, Any]]:
        """
        Read every row ordered by id, mapped to display keys.

        Returns:
            List[Dict[str, Any]]: display rows
        """
        wire_rows = []
        offset = 0

        # Loop to handle pagination
        while True:
            try:
                response = self._request(
                    "GET",
                    params={"select": "*", "order": "id.asc"},
                    headers={
                        "Range-Unit": "items",
                        "Range": f"{offset}-{offset + FETCH_PAGE_SIZE - 1}",
                    },
                )
            except RemoteError as e:
                # 416 past the last row when the count is an exact multiple of the page size
                if e.status_code == 416 and offset > 0:
                    break
                raise
            try:
                page = response.json()
            except ValueError as e:
                raise RemoteError(f"Invalid response from {self.config.url}: {e}") from e

            wire_rows.extend(page or [])
            if not page or len(page) < FETCH_PAGE_SIZE:
                break  # No more pages
            offset += FETCH_PAGE_SIZE

        logger.info(f"Fetched {len(wire_rows)} records from {self.table_name}")
        return [to_display(row) for row in wire_rows]

    def replace_all(self, records: Iterable[Dict[str, Any]]) -> int:
        """
        Overwrite the table: delete every row, then insert the new set in batches.

        The two phases are not one transaction. If a batch fails the table keeps
        only the batches inserted before it.

        Args:
            records: display rows

        Returns:
            int: number of rows inserted
        """
        wire_rows = [to_wire(record) for record in records]

        logger.info(f"Deleting all rows from {self.table_name}")
        self._request("DELETE", params={"id": "neq.-1"}, headers={"Prefer": "return=minimal"})

        for start in range(0, len(wire_rows), INSERT_BATCH_SIZE):
            batch = wire_rows[start:start + INSERT_BATCH_SIZE]
            self._request("POST", json=batch, headers={"Prefer": "return=minimal"})
            logger.info(f"Inserted rows {start + 1}-{start + len(batch)} of {len(wire_rows)}")

        return len(wire_rows)

    def count_records(self) -> int:
        """Exact row count; used to verify the connection and the table."""
        response = self._request(
            "GET",
            params={"select": "id"},
            headers={"Prefer": "count=exact", "Range-Unit": "items", "Range": "0-0"},
        )
        content_range = response.headers.get("Content-Range", "")
        total = content_range.rsplit("/", 1)[-1]
        try:
            return int(total)
        except ValueError:
            return len(response.json() or [])
