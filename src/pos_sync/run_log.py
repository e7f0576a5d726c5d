"""Structured run log persisted to the spreadsheet.

One row per pipeline execution. Writing the log must never fail the run:
errors are reported to the console logger and dropped.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import astuple, dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from pos_sync.sink import ReportWriter

logger = logging.getLogger(__name__)

LOG_SHEET_TITLE = "Logs"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
NO_ERROR = "-"
INVENTORY_SKIPPED = "skipped"
TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"

LOG_HEADERS = [
    "Timestamp",
    "Trigger",
    "Status",
    "Receipts",
    "Line Items",
    "Inventory Rows",
    "Period From",
    "Period To",
    "Duration (s)",
    "Error",
]

# GitHub Actions event names
TRIGGER_LABELS = {
    "schedule": "cron",
    "workflow_dispatch": "manual",
    "repository_dispatch": "api",
}


@dataclass(frozen=True)
class RunLogEntry:
    """One row of the run log (column order matches LOG_HEADERS)."""

    timestamp: str
    trigger: str
    status: str
    receipts: int
    line_items: int
    inventory_rows: int | str
    period_from: str
    period_to: str
    duration_sec: int
    error: str

    def as_row(self) -> list:
        return list(astuple(self))


def detect_trigger(
    environ: Mapping[str, str] | None = None,
    env_var: str = "GITHUB_EVENT_NAME",
) -> str:
    """Classify how this run was started: cron, manual, api or local."""
    env = os.environ if environ is None else environ
    return TRIGGER_LABELS.get(env.get(env_var, ""), "local")


class RunLogger:
    """Collects run statistics and appends one log row at the end.

    Args:
        tz: Timezone of the logged timestamp.
        trigger: Trigger label; detected from the environment when None.
        trigger_env_var: Environment variable used for detection.
        title: Log sheet title.
        clock: Wall-clock source (tests inject a fixed time).
        monotonic: Monotonic clock used for the duration.
    """

    def __init__(
        self,
        tz: str = "Asia/Bangkok",
        trigger: str | None = None,
        trigger_env_var: str = "GITHUB_EVENT_NAME",
        title: str = LOG_SHEET_TITLE,
        clock: Callable[[ZoneInfo], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.start_time = clock(ZoneInfo(tz))
        self._monotonic = monotonic
        self._start = monotonic()
        self.trigger = trigger or detect_trigger(env_var=trigger_env_var)
        self.title = title

        self.sales_count = 0
        self.sales_items_count = 0
        self.inventory_count = 0
        self.inventory_skipped = False
        self.period_from = ""
        self.period_to = ""

    def build_entry(self, status: str, error: str = "") -> RunLogEntry:
        duration = self._monotonic() - self._start
        return RunLogEntry(
            timestamp=self.start_time.strftime(TIMESTAMP_FORMAT),
            trigger=self.trigger,
            status=status,
            receipts=self.sales_count,
            line_items=self.sales_items_count,
            inventory_rows=INVENTORY_SKIPPED if self.inventory_skipped else self.inventory_count,
            period_from=self.period_from,
            period_to=self.period_to,
            duration_sec=round(duration),
            error=error or NO_ERROR,
        )

    def log_success(self, writer: ReportWriter) -> RunLogEntry:
        entry = self.build_entry(STATUS_SUCCESS)
        self._write(writer, entry)
        return entry

    def log_error(self, writer: ReportWriter, error: BaseException | str) -> RunLogEntry:
        entry = self.build_entry(STATUS_ERROR, str(error))
        self._write(writer, entry)
        return entry

    def _write(self, writer: ReportWriter, entry: RunLogEntry) -> None:
        try:
            writer.append_log_row(self.title, LOG_HEADERS, entry.as_row())
        except Exception:
            logger.exception("Failed to write run log row")
            return
        logger.info("Run log written: %s (%d s)", entry.status, entry.duration_sec)
