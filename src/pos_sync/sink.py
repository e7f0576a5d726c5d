"""Spreadsheet sink: full-refresh report writer and run-log appends.

Reports are written as a full replace: clear the sheet, write the header,
append every row, then format numeric columns. The run log is the one
append-only sheet.

No locking is done here. Only one pipeline instance may write to a
document at a time; the external trigger guarantees that.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import google.auth.exceptions
import gspread
import pandas as pd
import requests
from gspread.utils import rowcol_to_a1

from pos_sync.exceptions import SinkWriteError

logger = logging.getLogger(__name__)

NUMBER_FORMAT = "#,##0.00"
DEFAULT_HTTP_TIMEOUT = 60.0

Row = list[Any]


class Sheet(ABC):
    """One named table inside a TabularStore."""

    @property
    @abstractmethod
    def title(self) -> str:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def set_header(self, header: Sequence[str]) -> None:
        pass

    @abstractmethod
    def append_rows(self, rows: Sequence[Row]) -> None:
        pass

    @abstractmethod
    def append_row(self, row: Row) -> None:
        pass

    @abstractmethod
    def format_range(
        self, first_row: int, first_col: int, last_row: int, last_col: int, pattern: str
    ) -> None:
        """Apply a number format to a 1-based inclusive cell range."""
        pass


class TabularStore(ABC):
    """A document made of named sheets."""

    @property
    @abstractmethod
    def title(self) -> str:
        pass

    @abstractmethod
    def get_sheet(self, title: str) -> Sheet | None:
        """Return the sheet with ``title``, or None if it does not exist."""
        pass

    @abstractmethod
    def add_sheet(self, title: str, cols: int) -> Sheet:
        pass


@contextmanager
def _sheets_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (gspread.exceptions.GSpreadException, google.auth.exceptions.GoogleAuthError) as e:
        raise SinkWriteError(f"Google Sheets {action} failed: {e}") from e
    except requests.RequestException as e:
        raise SinkWriteError(f"Google Sheets {action} failed: {e}") from e


class GoogleSheet(Sheet):
    def __init__(self, worksheet: gspread.Worksheet) -> None:
        self._ws = worksheet

    @property
    def title(self) -> str:
        return self._ws.title

    def clear(self) -> None:
        with _sheets_errors(f"clear of '{self.title}'"):
            self._ws.clear()

    def set_header(self, header: Sequence[str]) -> None:
        with _sheets_errors(f"header write on '{self.title}'"):
            self._ws.update(values=[list(header)], range_name="A1")

    def append_rows(self, rows: Sequence[Row]) -> None:
        with _sheets_errors(f"append to '{self.title}'"):
            self._ws.append_rows([list(r) for r in rows], value_input_option="RAW")

    def append_row(self, row: Row) -> None:
        with _sheets_errors(f"append to '{self.title}'"):
            self._ws.append_row(list(row), value_input_option="RAW")

    def format_range(
        self, first_row: int, first_col: int, last_row: int, last_col: int, pattern: str
    ) -> None:
        cells = f"{rowcol_to_a1(first_row, first_col)}:{rowcol_to_a1(last_row, last_col)}"
        with _sheets_errors(f"format of '{self.title}'!{cells}"):
            self._ws.format(cells, {"numberFormat": {"type": "NUMBER", "pattern": pattern}})


class GoogleSheetsStore(TabularStore):
    """TabularStore backed by a Google spreadsheet via gspread."""

    def __init__(self, spreadsheet: gspread.Spreadsheet) -> None:
        self._doc = spreadsheet

    @classmethod
    def open(
        cls,
        spreadsheet_id: str,
        service_account_info: dict[str, Any],
        timeout: float | None = DEFAULT_HTTP_TIMEOUT,
    ) -> GoogleSheetsStore:
        """Authenticate with a service account and load the document metadata.

        Args:
            spreadsheet_id: Document key.
            service_account_info: Service-account key as a dict.
            timeout: Per-request timeout in seconds for every Sheets call.

        Raises:
            SinkWriteError: If authentication fails or the document cannot be opened.
        """
        with _sheets_errors("open"):
            client = gspread.service_account_from_dict(service_account_info)
            client.set_timeout(timeout)
            doc = client.open_by_key(spreadsheet_id)
        logger.info("Spreadsheet loaded: %s", doc.title)
        return cls(doc)

    @property
    def title(self) -> str:
        return self._doc.title

    def get_sheet(self, title: str) -> Sheet | None:
        with _sheets_errors(f"lookup of '{title}'"):
            try:
                ws = self._doc.worksheet(title)
            except gspread.exceptions.WorksheetNotFound:
                return None
        return GoogleSheet(ws)

    def add_sheet(self, title: str, cols: int) -> Sheet:
        with _sheets_errors(f"creation of '{title}'"):
            ws = self._doc.add_worksheet(title=title, rows=1000, cols=max(cols, 26))
        return GoogleSheet(ws)


def frame_to_rows(frame: pd.DataFrame) -> list[Row]:
    """Convert a DataFrame into JSON-safe row lists (NaN becomes None)."""
    if frame.empty:
        return []
    clean = frame.astype(object).where(frame.notna(), None)
    return [list(row) for row in clean.to_dict(orient="split")["data"]]


class ReportWriter:
    """Writes report DataFrames and run-log rows to a TabularStore.

    Args:
        store: Target document.
        sales_title: Sheet for the sales report.
        inventory_title: Sheet for the inventory report.
    """

    def __init__(
        self,
        store: TabularStore,
        sales_title: str = "Sales",
        inventory_title: str = "Stock",
    ) -> None:
        self.store = store
        self.sales_title = sales_title
        self.inventory_title = inventory_title

    def _get_or_create(self, title: str, cols: int) -> Sheet:
        sheet = self.store.get_sheet(title)
        if sheet is None:
            sheet = self.store.add_sheet(title, cols)
            logger.info("Created sheet '%s'", title)
        return sheet

    def write_report(
        self,
        title: str,
        frame: pd.DataFrame,
        numeric_columns: Sequence[str] = (),
        number_format: str = NUMBER_FORMAT,
    ) -> int:
        """Replace the contents of sheet ``title`` with ``frame``.

        The header row is ``frame.columns``. With no rows, only the header is
        written and no formatting is applied.

        Returns:
            Number of data rows written.

        Raises:
            SinkWriteError: If any store operation fails.
        """
        header = [str(c) for c in frame.columns]
        rows = frame_to_rows(frame)

        sheet = self._get_or_create(title, len(header))
        sheet.clear()
        sheet.set_header(header)
        if not rows:
            logger.info("No rows to write to '%s'; header only", title)
            return 0

        sheet.append_rows(rows)
        last_row = len(rows) + 1
        for column in numeric_columns:
            if column not in header:
                continue
            col = header.index(column) + 1
            sheet.format_range(2, col, last_row, col, number_format)

        logger.info("Wrote %d rows to '%s'", len(rows), title)
        return len(rows)

    def write_sales(self, frame: pd.DataFrame) -> int:
        from pos_sync.sales.transform import SALES_NUMERIC_COLUMNS

        return self.write_report(self.sales_title, frame, SALES_NUMERIC_COLUMNS)

    def write_inventory(self, frame: pd.DataFrame) -> int:
        from pos_sync.inventory.transform import INVENTORY_NUMERIC_COLUMNS

        return self.write_report(self.inventory_title, frame, INVENTORY_NUMERIC_COLUMNS)

    def append_log_row(self, title: str, header: Sequence[str], row: Row) -> None:
        """Append one row to an append-only sheet, creating it with ``header``."""
        sheet = self.store.get_sheet(title)
        if sheet is None:
            sheet = self.store.add_sheet(title, len(header))
            sheet.set_header(header)
            logger.info("Created sheet '%s'", title)
        sheet.append_row(row)
