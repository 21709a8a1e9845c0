"""
Row store adapter.

Maps the sheet's positional rows to Item records and back. Identity is the
row number: the item on sheet row N has id N. Rows are never reordered or
deleted by this adapter, so an id stays valid as long as nobody edits the
sheet structure by hand.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .errors import InvalidItemError
from .schema import (
    COLUMNS,
    FIRST_ITEM_ID,
    PROGRESS_COLUMN,
    Item,
    Priority,
    Progress,
)
from .sheets import a1_range, column_letter

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Sheet1"


def locale_date(d: date) -> str:
    """US locale short date without zero padding, e.g. 1/5/2024."""
    return f"{d.month}/{d.day}/{d.year}"


class ItemSheetAdapter:
    """Reads and writes Items on a row store (see worktrack.sheets)."""

    def __init__(
        self,
        row_store,
        sheet_name: str = DEFAULT_SHEET_NAME,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.row_store = row_store
        self.sheet_name = sheet_name
        self._clock = clock or date.today
        last = column_letter(len(COLUMNS))
        self.table_range = a1_range(sheet_name, f"A:{last}")
        self._progress_col = column_letter(PROGRESS_COLUMN + 1)

    def list_items(self) -> List[Item]:
        """All items in sheet order. Header-only or empty sheets give []."""
        rows = self.row_store.get_range(self.table_range)
        if len(rows) <= 1:
            return []
        return [
            Item.from_row(index + FIRST_ITEM_ID, row)
            for index, row in enumerate(rows[1:])
        ]

    def append_item(self, fields: Mapping[str, Any]) -> None:
        """
        Append one row. Progress is always "Not Started" and the submitted
        date is stamped here; anything else missing is written as "".
        """
        priority = fields.get("priority")
        parsed_priority = Priority.parse(priority)
        if priority not in (None, "") and parsed_priority is None:
            raise InvalidItemError(f"Invalid priority: {priority}")

        values: Dict[str, str] = {name: _cell(fields.get(name)) for name in COLUMNS}
        values["progress"] = Progress.NOT_STARTED.value
        values["priority"] = (parsed_priority or Priority.MEDIUM).value
        values["dateSubmitted"] = locale_date(self._clock())

        self.row_store.append_row(self.table_range, [values[name] for name in COLUMNS])
        logger.info("Appended item for project %r", values["project"])

    def update_progress(self, item_id: int, progress: Union[Progress, str]) -> None:
        """Write the progress cell of one row and nothing else."""
        row_number = _row_number(item_id)
        target = Progress.parse(progress)
        if target is None:
            raise InvalidItemError(f"Invalid progress: {progress}")

        cell = a1_range(self.sheet_name, f"{self._progress_col}{row_number}")
        self.row_store.update_cell(cell, target.value)
        logger.info("Item %d moved to %s", row_number, target.value)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _row_number(item_id: Any) -> int:
    try:
        row_number = int(item_id)
    except (TypeError, ValueError):
        raise InvalidItemError(f"Invalid item id: {item_id!r}")
    if row_number < FIRST_ITEM_ID:
        # Row 1 is the header
        raise InvalidItemError(f"Invalid item id: {item_id!r}")
    return row_number
