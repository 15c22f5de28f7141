"""
Record store clients: a PostgREST-style HTTP API and an in-memory stand-in.

Both speak the same small contract: query/insert/update/delete rows by
table name, with plain dict records.
"""

import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import requests

from ..domain.exceptions import InvalidArgument, RecordStoreError

logger = logging.getLogger(__name__)

# Filter values are either a plain value (equality) or an (operator, value) pair;
# "in" takes a list of values
FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in")

Filters = Mapping[str, Any]


def _split_filter(value: Any) -> Tuple[str, Any]:
    if isinstance(value, tuple):
        if len(value) != 2 or value[0] not in FILTER_OPERATORS:
            raise InvalidArgument(f"Unsupported filter {value!r}")
        if value[0] == "in" and not isinstance(value[1], (list, tuple, set, frozenset)):
            raise InvalidArgument(f"Filter 'in' needs a list of values, got {value[1]!r}")
        return value
    return "eq", value


class RecordStoreProtocol(Protocol):
    """Protocol describing the record store behaviour the repositories need."""

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        """Return rows matching all filters, ascending by ``order_by`` columns."""

    def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Insert rows and return them as stored (with ids)."""

    def update(self, table: str, values: Mapping[str, Any], filters: Filters) -> List[Dict[str, Any]]:
        """Update matching rows and return them."""

    def delete(self, table: str, filters: Filters) -> int:
        """Delete matching rows and return how many were removed."""


class RestRecordStore:
    """
    Client for a PostgREST-compatible REST endpoint (e.g. a hosted Supabase
    project).

    Rows live under ``{base_url}/rest/v1/{table}``; filters are sent as
    ``column=op.value`` query parameters.
    """

    API_PATH = "rest/v1"

    def __init__(self, base_url: str, api_key: str = "", timeout_seconds: int = 30):
        """
        Initialize the REST client.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: API key sent as ``apikey`` and bearer token
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if api_key:
            self.headers["apikey"] = api_key
            self.headers["Authorization"] = f"Bearer {api_key}"

    def _url(self, table: str) -> str:
        return f"{self.base_url}/{self.API_PATH}/{table}"

    @staticmethod
    def _encode_value(value: Any) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    @classmethod
    def _encode_list(cls, values: Any) -> str:
        # Double quotes keep commas and parentheses inside values literal
        quoted = []
        for value in values:
            text = cls._encode_value(value).replace("\\", "\\\\").replace('"', '\\"')
            quoted.append(f'"{text}"')
        return ",".join(quoted)

    def _filter_params(self, filters: Optional[Filters]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for column, raw in (filters or {}).items():
            operator, value = _split_filter(raw)
            if value is None and operator == "eq":
                params[column] = "is.null"
            elif operator == "in":
                params[column] = f"in.({self._encode_list(value)})"
            else:
                params[column] = f"{operator}.{self._encode_value(value)}"
        return params

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
    ) -> Any:
        url = self._url(table)
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RecordStoreError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return []

        try:
            return response.json()
        except ValueError as e:
            raise RecordStoreError(f"{method} {table} returned invalid JSON: {e}") from e

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        params = {"select": "*"}
        params.update(self._filter_params(filters))
        if order_by:
            params["order"] = ",".join(f"{column}.asc" for column in order_by)
        return self._request("GET", table, params=params)

    def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        if not records:
            return []
        return self._request("POST", table, payload=[dict(record) for record in records])

    def update(self, table: str, values: Mapping[str, Any], filters: Filters) -> List[Dict[str, Any]]:
        if not filters:
            raise InvalidArgument("Refusing to update without filters")
        return self._request("PATCH", table, params=self._filter_params(filters), payload=dict(values))

    def delete(self, table: str, filters: Filters) -> int:
        if not filters:
            raise InvalidArgument("Refusing to delete without filters")
        return len(self._request("DELETE", table, params=self._filter_params(filters)))


class InMemoryRecordStore:
    """
    Record store kept in process memory.

    Seeded from a JSON document mapping table names to lists of rows. Used
    for the CLI's mock mode and in tests, without any hosted database.
    """

    def __init__(self, tables: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }

    @classmethod
    def from_json_file(cls, data_file: Path) -> "InMemoryRecordStore":
        """
        Load seed data from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not a mapping of table -> rows
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Mock data file not found: {data_file}")

        with open(data_file, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Mock data file must contain a mapping of table names to rows.")

        logger.debug("Loaded mock tables %s from %s", sorted(data), data_file)
        return cls(tables=data)

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Optional[Filters]) -> bool:
        for column, raw in (filters or {}).items():
            operator, expected = _split_filter(raw)
            actual = row.get(column)

            if operator == "eq":
                if actual != expected:
                    return False
            elif operator == "in":
                if actual not in expected:
                    return False
            elif operator == "neq":
                if actual is None or actual == expected:
                    return False
            else:
                if actual is None:
                    return False
                if operator == "gt" and not actual > expected:
                    return False
                if operator == "gte" and not actual >= expected:
                    return False
                if operator == "lt" and not actual < expected:
                    return False
                if operator == "lte" and not actual <= expected:
                    return False
        return True

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        rows = [copy.deepcopy(row) for row in self._rows(table) if self._matches(row, filters)]
        # Later keys first so earlier columns take precedence; nulls sort last
        for column in reversed(list(order_by)):
            rows.sort(key=lambda row, column=column: self._sort_key(row.get(column)))
        return rows

    @staticmethod
    def _sort_key(value: Any) -> Tuple[bool, Any]:
        return (value is None, value if value is not None else 0)

    def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        inserted: List[Dict[str, Any]] = []
        for record in records:
            row = dict(record)
            row.setdefault("id", str(uuid.uuid4()))
            self._rows(table).append(row)
            inserted.append(copy.deepcopy(row))
        return inserted

    def update(self, table: str, values: Mapping[str, Any], filters: Filters) -> List[Dict[str, Any]]:
        if not filters:
            raise InvalidArgument("Refusing to update without filters")
        updated: List[Dict[str, Any]] = []
        for row in self._rows(table):
            if self._matches(row, filters):
                row.update(values)
                updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table: str, filters: Filters) -> int:
        if not filters:
            raise InvalidArgument("Refusing to delete without filters")
        rows = self._rows(table)
        kept = [row for row in rows if not self._matches(row, filters)]
        removed = len(rows) - len(kept)
        self.tables[table] = kept
        return removed
