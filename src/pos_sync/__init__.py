"""POS Sync - pull POS sales and inventory into a spreadsheet.

This package pulls receipts and stock data from the POS REST API and
materializes them into a spreadsheet, appending one run-log row per run.

Module Structure:
    pos_sync.client: Paginated API client
    pos_sync.reference: Category/supplier/item lookup maps
    pos_sync.sales: Receipt extraction and the sales report
    pos_sync.inventory: Stock extraction and the inventory report
    pos_sync.sink: Spreadsheet store and full-refresh writer
    pos_sync.run_log: Structured run log
    pos_sync.schedule: Run-window policy
    pos_sync.pipeline: Orchestrator with retry policy

Quick Start:
    >>> from pos_sync import SyncConfig, SyncPipeline
    >>> from pos_sync.client import PosApiClient
    >>> from pos_sync.sink import GoogleSheetsStore, ReportWriter
    >>>
    >>> config = SyncConfig.from_env()
    >>> client = PosApiClient(config.api_token, config.api_base_url)
    >>> store = GoogleSheetsStore.open(config.spreadsheet_id, config.service_account_info)
    >>> result = SyncPipeline(config, client, ReportWriter(store)).run()

Sheets:
    Sales - one row per receipt line item
    Stock - one row per item variant
    Logs  - one row per run (append-only)
"""

__version__ = "0.1.0"

from pos_sync.config import SyncConfig
from pos_sync.exceptions import (
    ApiAuthorizationError,
    ApiRequestError,
    ConfigError,
    ETLError,
    ExtractionError,
    PipelineHalted,
    PosSyncError,
    SinkWriteError,
)
from pos_sync.pipeline import PipelineState, RunResult, SyncPipeline

__all__ = [
    "ApiAuthorizationError",
    "ApiRequestError",
    "ConfigError",
    "ETLError",
    "ExtractionError",
    "PipelineHalted",
    "PipelineState",
    "PosSyncError",
    "RunResult",
    "SinkWriteError",
    "SyncConfig",
    "SyncPipeline",
    "__version__",
]
