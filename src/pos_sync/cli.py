"""Command-line entry point for the sync pipeline.

Examples:
  # Scheduled run (skips silently outside working hours)
  pos-sync

  # Manual run outside working hours, single attempt, verbose
  pos-sync --force --once --trigger manual -v

  # Read settings from a dotenv file
  pos-sync --env-file utils/secrets.env

Exit codes:
  0  success or skipped outside the run window
  1  run halted (authorization failure or retries exhausted)
  2  configuration error
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from pos_sync.client import PosApiClient, make_session
from pos_sync.config import SyncConfig
from pos_sync.exceptions import ConfigError, PipelineHalted, SinkWriteError
from pos_sync.pipeline import SyncPipeline
from pos_sync.schedule import format_datetime
from pos_sync.sink import GoogleSheetsStore, ReportWriter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_HALTED = 1
EXIT_CONFIG = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="pos-sync",
        description="Sync POS sales and inventory into a spreadsheet.",
    )
    p.add_argument("--force", action="store_true", help="Run even outside working hours")
    p.add_argument("--once", action="store_true", help="Single attempt, no retries")
    p.add_argument("--trigger", help="Trigger label for the run log (default: from environment)")
    p.add_argument("--env-file", help="Dotenv file with settings")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def build_pipeline(config: SyncConfig, args: argparse.Namespace) -> SyncPipeline:
    """Wire the API client, spreadsheet and pipeline from configuration."""
    client = PosApiClient(
        config.api_token,
        base_url=config.api_base_url,
        session=make_session(timeout=config.http_timeout),
    )
    store = GoogleSheetsStore.open(
        config.spreadsheet_id,
        config.service_account_info,
        timeout=config.http_timeout,
    )
    writer = ReportWriter(
        store,
        sales_title=config.sales_sheet_title,
        inventory_title=config.inventory_sheet_title,
    )
    return SyncPipeline(config, client, writer, trigger=args.trigger, force=args.force)


def main(argv: list[str] | None = None) -> int:
    """Run one pipeline invocation and return the process exit code."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = SyncConfig.from_env(env_file=args.env_file)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG
    if args.once:
        config = replace(config, max_attempts=1)

    try:
        pipeline = build_pipeline(config, args)
    except SinkWriteError as e:
        logger.error("Cannot open spreadsheet: %s", e)
        return EXIT_HALTED

    try:
        result = pipeline.run()
    except PipelineHalted as e:
        logger.error("%s", e)
        return EXIT_HALTED

    if result.skipped:
        assert result.next_run is not None
        logger.info("Skipped; next eligible run at %s", format_datetime(result.next_run))
    return EXIT_OK


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
