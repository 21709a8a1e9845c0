"""
Row store backends.

A row store is the external record store seen as an ordered table of string
cells addressed with A1 ranges. Only three operations are used:

    get_range(range)          -> 2D list of strings
    append_row(range, values) -> None
    update_cell(cell, value)  -> None

SheetsRowStore talks to the Google Sheets v4 API with a service account.
MemoryRowStore keeps the table in process for local runs and tests.
"""
import json
import logging
import re
import threading
from typing import Any, Dict, List, Optional, Sequence

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import ConfigError, RowStoreError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Parsed input, so dates and numbers typed into the form behave like typed cells
VALUE_INPUT_OPTION = "USER_ENTERED"

_CELL_RE = re.compile(r"^([A-Z]+)(\d*)$")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# A1 helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def column_letter(index: int) -> str:
    """1-based column index to A1 letters (1 -> A, 27 -> AA)."""
    if index < 1:
        raise ValueError("Column index must be >= 1")
    letters: List[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def column_index(letters: str) -> int:
    """A1 letters to 1-based column index (A -> 1)."""
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - 64)
    return index


def a1_range(sheet_name: str, range_spec: str) -> str:
    """Qualify ``range_spec`` with a quoted worksheet title."""
    title = (sheet_name or "").strip()
    if not title:
        raise ValueError("Worksheet title must not be empty")
    title = title.replace("'", "''")
    return f"'{title}'!{range_spec}"


def split_range(range_spec: str) -> tuple:
    """Split "'Sheet'!A1:B2" into ("Sheet", "A1:B2")."""
    if "!" not in range_spec:
        return "", range_spec
    sheet, cells = range_spec.rsplit("!", 1)
    sheet = sheet.strip()
    if sheet.startswith("'") and sheet.endswith("'") and len(sheet) >= 2:
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, cells


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Google Sheets backend
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def load_credentials(credentials_json: str = "", credentials_path: str = ""):
    """
    Build service account credentials.

    Inline JSON (e.g. from GOOGLE_CREDENTIALS_JSON on a hosted deploy) wins over
    a key file path used for local development.
    """
    if credentials_json:
        try:
            info = json.loads(credentials_json)
        except json.JSONDecodeError as e:
            raise ConfigError(f"GOOGLE_CREDENTIALS_JSON is not valid JSON: {e}") from e
        if not isinstance(info, dict):
            raise ConfigError("GOOGLE_CREDENTIALS_JSON must be a JSON object")
        try:
            return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (KeyError, ValueError) as e:
            raise ConfigError(f"GOOGLE_CREDENTIALS_JSON is not a service account key: {e}") from e
    if credentials_path:
        try:
            return service_account.Credentials.from_service_account_file(
                credentials_path, scopes=SCOPES
            )
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot load credentials from {credentials_path}: {e}") from e
    raise ConfigError("No Google credentials configured")


class SheetsRowStore:
    """Row store backed by a Google spreadsheet."""

    def __init__(self, spreadsheet_id: str, service=None, credentials=None):
        if not spreadsheet_id:
            raise ConfigError("Spreadsheet id is required")
        self.spreadsheet_id = spreadsheet_id
        if service is None:
            service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        logger.info("Using spreadsheet %s", spreadsheet_id)
        self._values = service.spreadsheets().values()

    @classmethod
    def from_config(cls, cfg) -> "SheetsRowStore":
        credentials = load_credentials(cfg.credentials_json, cfg.credentials_path)
        return cls(cfg.spreadsheet_id, credentials=credentials)

    def _execute(self, request, action: str, range_spec: str) -> Dict[str, Any]:
        try:
            return request.execute() or {}
        except HttpError as e:
            raise RowStoreError(f"Sheets {action} failed for {range_spec}: {e}") from e
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            # Token refresh failures and transport errors (DNS, TLS, timeouts)
            raise RowStoreError(f"Sheets {action} failed for {range_spec}: {e}") from e

    def get_range(self, range_spec: str) -> List[List[str]]:
        request = self._values.get(spreadsheetId=self.spreadsheet_id, range=range_spec)
        response = self._execute(request, "get", range_spec)
        return response.get("values", [])

    def append_row(self, range_spec: str, values: Sequence[Any]) -> None:
        request = self._values.append(
            spreadsheetId=self.spreadsheet_id,
            range=range_spec,
            valueInputOption=VALUE_INPUT_OPTION,
            body={"values": [list(values)]},
        )
        self._execute(request, "append", range_spec)

    def update_cell(self, cell: str, value: Any) -> None:
        request = self._values.update(
            spreadsheetId=self.spreadsheet_id,
            range=cell,
            valueInputOption=VALUE_INPUT_OPTION,
            body={"values": [[value]]},
        )
        self._execute(request, "update", cell)

    def describe(self) -> str:
        return f"sheets:{self.spreadsheet_id}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# In-memory backend
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class MemoryRowStore:
    """
    In-process table with the same three operations.

    Reads honour the column span of the requested range ("A:I") and return
    rows with trailing empty cells trimmed, like the Sheets API does. The
    sheet name part of a range is ignored: one table per store.
    """

    def __init__(self, rows: Optional[List[List[Any]]] = None):
        self.rows: List[List[str]] = [
            [("" if cell is None else str(cell)) for cell in row] for row in (rows or [])
        ]
        self._lock = threading.Lock()

    @staticmethod
    def _parse_cell(ref: str) -> tuple:
        m = _CELL_RE.match(ref.strip().upper())
        if not m:
            raise RowStoreError(f"Unsupported range: {ref}")
        row = int(m.group(2)) if m.group(2) else None
        return column_index(m.group(1)), row

    def _columns(self, range_spec: str) -> tuple:
        _sheet, cells = split_range(range_spec)
        start, _, end = cells.partition(":")
        first_col, first_row = self._parse_cell(start)
        last_col, last_row = self._parse_cell(end or start)
        return first_col, last_col, first_row, last_row

    def get_range(self, range_spec: str) -> List[List[str]]:
        first_col, last_col, first_row, last_row = self._columns(range_spec)
        with self._lock:
            lo = (first_row or 1) - 1
            hi = last_row if last_row is not None else len(self.rows)
            result = []
            for row in self.rows[lo:hi]:
                cells = row[first_col - 1:last_col]
                while cells and cells[-1] == "":
                    cells = cells[:-1]
                result.append(list(cells))
            while result and not result[-1]:
                result.pop()
            return result

    def append_row(self, range_spec: str, values: Sequence[Any]) -> None:
        first_col, _last_col, _first, _last = self._columns(range_spec)
        row = [""] * (first_col - 1) + [("" if v is None else str(v)) for v in values]
        with self._lock:
            self.rows.append(row)

    def update_cell(self, cell: str, value: Any) -> None:
        _sheet, ref = split_range(cell)
        col, row = self._parse_cell(ref)
        if row is None or row < 1:
            raise RowStoreError(f"Not a single cell: {cell}")
        with self._lock:
            while len(self.rows) < row:
                self.rows.append([])
            target = self.rows[row - 1]
            if len(target) < col:
                target.extend([""] * (col - len(target)))
            target[col - 1] = "" if value is None else str(value)

    def describe(self) -> str:
        return "memory"
