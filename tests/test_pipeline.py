"""Tests for the sync orchestrator: gating, retries and the run log."""

from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from conftest import BANGKOK, IN_WINDOW, OUT_OF_WINDOW, FakeSession, FakeStore, error, page

from pos_sync.client import PosApiClient
from pos_sync.config import SyncConfig
from pos_sync.exceptions import ApiAuthorizationError, PipelineHalted
from pos_sync.inventory.transform import INVENTORY_COLUMNS
from pos_sync.pipeline import PipelineState, SyncPipeline
from pos_sync.run_log import INVENTORY_SKIPPED, LOG_HEADERS
from pos_sync.sales.transform import SALES_COLUMNS
from pos_sync.sink import ReportWriter

INVENTORY_PATHS = {"suppliers", "stores", "inventory"}

ITEM = {
    "id": "item-cola",
    "handle": "cola",
    "item_name": "Cola",
    "category_id": "cat-drinks",
    "track_stock": True,
    "variants": [
        {
            "variant_id": "var-1",
            "sku": "10001",
            "cost": 12,
            "default_price": 25,
            "stores": [{"store_id": "s1", "price": 30, "available_for_sale": True}],
        }
    ],
}
RECEIPT = {
    "receipt_number": "1-1001",
    "receipt_date": "2025-06-10T08:15:00.000Z",
    "line_items": [
        {"item_id": "item-cola", "item_name": "Cola", "quantity": 2, "price": 30, "total_discount": 0},
        {"item_id": "item-cola", "item_name": "Cola", "quantity": 1, "price": 30, "total_discount": 5},
    ],
    "payments": [{"type": "CASH", "name": "Cash"}],
}


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def routes(session: FakeSession) -> FakeSession:
    session.routes.update(
        {
            "categories": page("categories", [{"id": "cat-drinks", "name": "Drinks"}]),
            "items": page("items", [ITEM]),
            "receipts": page("receipts", [RECEIPT]),
            "suppliers": page("suppliers", []),
            "stores": page("stores", [{"id": "s1", "name": "Main"}]),
            "inventory": page("inventory_levels", [{"variant_id": "var-1", "in_stock": 6}]),
        }
    )
    return session


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def make_pipeline(
    config: SyncConfig,
    client: PosApiClient,
    writer: ReportWriter,
    sleep: RecordingSleep,
    now=IN_WINDOW,
    trigger: str = "cron",
    **kwargs,
) -> SyncPipeline:
    return SyncPipeline(
        config,
        client,
        writer,
        trigger=trigger,
        clock=lambda tz: now.astimezone(tz),
        sleep=sleep,
        monotonic=lambda: 0.0,
        **kwargs,
    )


def log_rows(store: FakeStore) -> list[list]:
    return store.sheets["Logs"].data


def test_outside_window_is_skipped(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    result = make_pipeline(config, client, writer, sleep, now=OUT_OF_WINDOW).run()

    assert result.skipped
    assert result.next_run is not None
    assert (result.next_run.day, result.next_run.hour) == (10, 13)
    assert routes.calls == []
    assert store.sheets == {}


def test_successful_run(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    pipeline = make_pipeline(config, client, writer, sleep)
    result = pipeline.run()

    assert result.state is PipelineState.IDLE
    assert pipeline.state is PipelineState.IDLE
    assert (result.receipts, result.line_items, result.inventory_rows) == (1, 2, 1)
    assert result.attempts == 1
    assert sleep.calls == []

    assert store.sheets["Sales"].header == SALES_COLUMNS
    assert len(store.sheets["Sales"].data) == 2
    assert store.sheets["Stock"].header == INVENTORY_COLUMNS
    assert len(store.sheets["Stock"].data) == 1

    logs = store.sheets["Logs"]
    assert logs.header == LOG_HEADERS
    [row] = logs.data
    assert row[1:6] == ["cron", "success", 1, 2, 1]
    assert row[6] == "10.05.2025 15:00:00"
    assert row[7] == "10.06.2025 15:00:00"


def test_inventory_fetched_after_sales_written(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    make_pipeline(config, client, writer, sleep).run()

    paths = routes.paths()
    assert paths.index("receipts") < paths.index("suppliers")
    sheet_order = [title for title, op in store.ops if op == "clear"]
    assert sheet_order == ["Sales", "Stock"]


def test_authorization_failure_halts_without_retry(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    routes.routes["categories"] = error(401, "Unauthorized")
    pipeline = make_pipeline(config, client, writer, sleep)

    with pytest.raises(PipelineHalted) as exc_info:
        pipeline.run()

    assert isinstance(exc_info.value.cause, ApiAuthorizationError)
    assert exc_info.value.attempts == 1
    assert pipeline.state is PipelineState.FATAL
    assert sleep.calls == []
    assert routes.paths() == ["categories"]
    [row] = log_rows(store)
    assert row[2] == "error"
    assert "401" in row[-1]
    assert "Sales" not in store.sheets


def test_transient_failures_exhaust_attempts(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    routes.routes["categories"] = error(503, "Service Unavailable")

    with pytest.raises(PipelineHalted) as exc_info:
        make_pipeline(config, client, writer, sleep).run()

    assert exc_info.value.attempts == 3
    assert sleep.calls == [300.0, 300.0]
    assert routes.paths() == ["categories"] * 3
    [row] = log_rows(store)
    assert row[2] == "error"
    assert "503" in row[-1]


def test_transient_failure_then_success(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    routes.routes["receipts"] = [error(502, "Bad Gateway"), page("receipts", [RECEIPT])]

    result = make_pipeline(config, client, writer, sleep).run()

    assert result.attempts == 2
    assert sleep.calls == [300.0]
    assert [row[2] for row in log_rows(store)] == ["success"]


def test_sales_failure_skips_inventory(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    routes.routes["receipts"] = error(500, "Internal Server Error")

    with pytest.raises(PipelineHalted):
        make_pipeline(replace(config, max_attempts=1), client, writer, sleep).run()

    assert not INVENTORY_PATHS & set(routes.paths())
    assert "Stock" not in store.sheets


def test_sink_failure_is_retried(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    store.add_sheet("Stock", 15)
    store.fail_on.add(("Stock", "append_rows"))

    with pytest.raises(PipelineHalted):
        make_pipeline(replace(config, max_attempts=2), client, writer, sleep).run()

    assert sleep.calls == [300.0]
    [row] = log_rows(store)
    assert row[2] == "error"
    assert "append_rows failed on Stock" in row[-1]


def test_force_runs_outside_window(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession, sleep: RecordingSleep,
) -> None:
    result = make_pipeline(config, client, writer, sleep, now=OUT_OF_WINDOW, force=True, trigger="manual").run()

    assert not result.skipped
    assert result.inventory_rows == 1
    [row] = log_rows(store)
    assert row[1:3] == ["manual", "success"]


class AdvancingClock:
    """Wall clock that moves forward whenever the pipeline sleeps."""

    def __init__(self, start) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self, tz):
        return self.now.astimezone(tz)

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


def test_retry_after_window_closes_keeps_stock_report(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession,
) -> None:
    stock = store.add_sheet("Stock", 15)
    stock.rows = [list(INVENTORY_COLUMNS), ["10001", "Cola"]]
    routes.routes["receipts"] = [error(503, "Service Unavailable"), page("receipts", [RECEIPT])]
    # 00:58 is inside the window; the retry runs at 01:03
    clock = AdvancingClock(datetime(2025, 6, 11, 0, 58, tzinfo=BANGKOK))
    pipeline = SyncPipeline(
        config, client, writer, trigger="cron", clock=clock, sleep=clock.sleep, monotonic=lambda: 0.0
    )

    result = pipeline.run()

    assert clock.sleeps == [300.0]
    assert result.attempts == 2
    assert result.inventory_skipped
    assert result.inventory_rows == 0
    assert not INVENTORY_PATHS & set(routes.paths())
    assert stock.rows == [list(INVENTORY_COLUMNS), ["10001", "Cola"]]
    assert ("Stock", "clear") not in store.ops
    assert len(store.sheets["Sales"].data) == 2
    [row] = log_rows(store)
    assert row[2:6] == ["success", 1, 2, INVENTORY_SKIPPED]


def test_forced_retry_after_window_closes_refreshes_stock(
    config: SyncConfig, client: PosApiClient, writer: ReportWriter, store: FakeStore,
    routes: FakeSession,
) -> None:
    routes.routes["receipts"] = [error(503, "Service Unavailable"), page("receipts", [RECEIPT])]
    clock = AdvancingClock(datetime(2025, 6, 11, 0, 58, tzinfo=BANGKOK))
    pipeline = SyncPipeline(
        config, client, writer, trigger="manual", force=True, clock=clock, sleep=clock.sleep,
        monotonic=lambda: 0.0,
    )

    result = pipeline.run()

    assert not result.inventory_skipped
    assert result.inventory_rows == 1
    assert len(store.sheets["Stock"].data) == 1
