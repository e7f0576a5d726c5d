"""End-to-end sync run: gate, extract, write, log, retry.

The orchestrator is the single place where failures are classified:

- ApiAuthorizationError is fatal. One error row is logged and the run halts.
- Any other error is retried after a fixed delay, up to ``max_attempts``
  attempts in total. Exhausting the attempts logs one error row and halts.

Retries are driven by an explicit loop with an injectable ``sleep``; the
attempt counter lives on the stack of ``run()`` and never outlives it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from pos_sync.client import PosApiClient
from pos_sync.config import SyncConfig
from pos_sync.exceptions import ApiAuthorizationError, PipelineHalted
from pos_sync.inventory.extract import extract_inventory
from pos_sync.inventory.transform import inventory_to_frame
from pos_sync.run_log import TIMESTAMP_FORMAT, RunLogger
from pos_sync.sales.extract import extract_sales
from pos_sync.sales.transform import receipts_to_frame
from pos_sync.schedule import format_datetime, get_next_run_time, is_within_schedule
from pos_sync.sink import ReportWriter

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    GATING = "gating"
    FETCHING = "fetching"
    WRITING = "writing"
    LOGGING = "logging"
    RETRYING = "retrying"
    SKIPPED = "skipped"
    FATAL = "fatal"


@dataclass(frozen=True)
class RunResult:
    """Outcome of one pipeline invocation."""

    state: PipelineState
    receipts: int = 0
    line_items: int = 0
    inventory_rows: int = 0
    period_from: datetime | None = None
    period_to: datetime | None = None
    attempts: int = 0
    next_run: datetime | None = None
    inventory_skipped: bool = False

    @property
    def skipped(self) -> bool:
        return self.state is PipelineState.SKIPPED


class SyncPipeline:
    """Runs the sales and inventory sync against one spreadsheet.

    Args:
        config: Validated configuration.
        client: POS API client.
        writer: Report writer bound to the target spreadsheet.
        trigger: Trigger label for the run log; detected when None.
        force: Ignore the run window (manual runs).
        clock: Returns the current time in a given zone.
        sleep: Called with the retry delay in seconds.
        monotonic: Monotonic clock for run durations.
    """

    def __init__(
        self,
        config: SyncConfig,
        client: PosApiClient,
        writer: ReportWriter,
        *,
        trigger: str | None = None,
        force: bool = False,
        clock: Callable[[ZoneInfo], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.client = client
        self.writer = writer
        self.trigger = trigger
        self.force = force
        self._clock = clock
        self._sleep = sleep
        self._monotonic = monotonic
        self.state = PipelineState.IDLE

    def _now(self) -> datetime:
        return self._clock(self.config.tz)

    @property
    def _window(self) -> dict:
        return {
            "tz": self.config.timezone,
            "start_hour": self.config.window_start_hour,
            "end_hour": self.config.window_end_hour,
        }

    def run(self) -> RunResult:
        """Run the pipeline with the bounded retry policy.

        Returns:
            RunResult with state IDLE on success or SKIPPED outside the window.

        Raises:
            PipelineHalted: On an authorization failure or when every
                attempt failed. The error row has already been logged.
        """
        self.state = PipelineState.GATING
        now = self._now()
        if not self.force and not is_within_schedule(now, **self._window):
            next_run = get_next_run_time(now, **self._window)
            logger.info("Outside working hours. Next run: %s", format_datetime(next_run))
            self.state = PipelineState.IDLE
            return RunResult(state=PipelineState.SKIPPED, next_run=next_run)

        run_log = RunLogger(
            tz=self.config.timezone,
            trigger=self.trigger,
            trigger_env_var=self.config.trigger_env_var,
            title=self.config.log_sheet_title,
            clock=self._clock,
            monotonic=self._monotonic,
        )
        max_attempts = self.config.max_attempts
        attempt = 0
        while True:
            attempt += 1
            try:
                result = self.run_once(run_log, attempt)
            except ApiAuthorizationError as e:
                self.state = PipelineState.FATAL
                logger.error("Authorization failed, not retrying: %s", e)
                run_log.log_error(self.writer, e)
                raise PipelineHalted(e, attempt) from e
            except Exception as e:
                if attempt >= max_attempts:
                    self.state = PipelineState.FATAL
                    logger.error("Attempt %d/%d failed, giving up: %s", attempt, max_attempts, e)
                    run_log.log_error(self.writer, e)
                    raise PipelineHalted(e, attempt) from e

                self.state = PipelineState.RETRYING
                delay = self.config.retry_delay_seconds
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.0f s", attempt, max_attempts, e, delay
                )
                self._sleep(delay)
                continue

            self.state = PipelineState.LOGGING
            run_log.log_success(self.writer)
            self.state = PipelineState.IDLE
            return result

    def run_once(self, run_log: RunLogger, attempt: int = 1) -> RunResult:
        """Execute one attempt: sales, then inventory. Errors propagate."""
        self.state = PipelineState.FETCHING
        now = self._now()
        start, end = self.config.sales_window.resolve(now)
        run_log.period_from = start.strftime(TIMESTAMP_FORMAT)
        run_log.period_to = end.strftime(TIMESTAMP_FORMAT)

        receipts = extract_sales(self.client, start, end)
        line_items = sum(len(r.line_items) for r in receipts)
        run_log.sales_count = len(receipts)
        run_log.sales_items_count = line_items

        self.state = PipelineState.WRITING
        self.writer.write_sales(receipts_to_frame(receipts, self.config.timezone))

        inventory_skipped = not self.force and not is_within_schedule(now, **self._window)
        records = []
        if inventory_skipped:
            # the window closed during a retry; keep the last Stock report
            run_log.inventory_skipped = True
            logger.warning(
                "Working hours ended at %s; inventory refresh skipped, Stock sheet left unchanged",
                format_datetime(now),
            )
        else:
            self.state = PipelineState.FETCHING
            records = extract_inventory(
                self.client,
                now=now,
                merge_policy=self.config.stock_merge_policy,
                force=self.force,
                **self._window,
            )
            run_log.inventory_count = len(records)

            self.state = PipelineState.WRITING
            self.writer.write_inventory(inventory_to_frame(records, self.config.timezone))

        logger.info(
            "Sync finished: %d receipts, %d line items, %d inventory rows",
            len(receipts),
            line_items,
            len(records),
        )
        return RunResult(
            state=PipelineState.IDLE,
            receipts=len(receipts),
            line_items=line_items,
            inventory_rows=len(records),
            period_from=start,
            period_to=end,
            attempts=attempt,
            inventory_skipped=inventory_skipped,
        )
