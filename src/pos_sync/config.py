"""Unified configuration for POS Sync.

This module provides a single configuration class built from the process
environment. Every required value is validated up front so the pipeline
never starts partially configured.

Examples:
    >>> from pos_sync.config import SyncConfig
    >>> config = SyncConfig.from_env(env_file=".env")
    >>> config.sales_window.resolve(config.now())
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd
from dotenv import dotenv_values, load_dotenv

from pos_sync.exceptions import ConfigError
from pos_sync.inventory.models import StockMergePolicy

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.loyverse.com/v1.0"
DEFAULT_TIMEZONE = "Asia/Bangkok"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

_SALES_WINDOW_RE = re.compile(r"^(?:(?P<kind>months|since):(?P<value>.+)|(?P<ytd>ytd))$")


@dataclass(frozen=True)
class DateWindowPolicy:
    """How far back the sales extractor looks.

    Attributes:
        kind: "months" (trailing N calendar months), "ytd" (start of the
            current local year), or "since" (fixed start date).
        months: Number of months for the "months" policy.
        start: Fixed start date for the "since" policy.
    """

    kind: str = "months"
    months: int = 1
    start: date | None = None

    @classmethod
    def parse(cls, text: str) -> DateWindowPolicy:
        """Parse a policy string such as ``months:3``, ``ytd`` or ``since:2025-01-01``.

        Raises:
            ConfigError: If the string does not describe a known policy.

        Examples:
            >>> DateWindowPolicy.parse("months:3")
            DateWindowPolicy(kind='months', months=3, start=None)
        """
        match = _SALES_WINDOW_RE.match(text.strip().lower())
        if not match:
            raise ConfigError(
                f"Invalid SALES_WINDOW '{text}'. Use 'months:N', 'ytd' or 'since:YYYY-MM-DD'."
            )
        if match.group("ytd"):
            return cls(kind="ytd")

        kind = match.group("kind")
        value = match.group("value")
        if kind == "months":
            try:
                months = int(value)
            except ValueError as e:
                raise ConfigError(f"Invalid month count in SALES_WINDOW: {value!r}") from e
            if months < 1:
                raise ConfigError("SALES_WINDOW month count must be at least 1")
            return cls(kind="months", months=months)

        try:
            start = date.fromisoformat(value)
        except ValueError as e:
            raise ConfigError(f"Invalid start date in SALES_WINDOW: {value!r}") from e
        return cls(kind="since", start=start)

    def resolve(self, now: datetime) -> tuple[datetime, datetime]:
        """Return the (start, end) instants of the window ending at ``now``."""
        if self.kind == "months":
            start = (pd.Timestamp(now) - pd.DateOffset(months=self.months)).to_pydatetime()
        elif self.kind == "ytd":
            start = now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        else:
            assert self.start is not None
            start = datetime(self.start.year, self.start.month, self.start.day, tzinfo=now.tzinfo)
        return start, now


@dataclass
class SyncConfig:
    """All settings used by the sync pipeline.

    Attributes:
        api_token: Bearer token for the POS API.
        spreadsheet_id: Identifier of the target spreadsheet document.
        service_account_info: Service-account key as a dict.
        trigger_secret: Shared secret for the external trigger endpoint.
        api_base_url: Base URL of the POS REST API.
        timezone: IANA timezone name used for the run window and timestamps.
        window_start_hour: First hour of the allowed run window.
        window_end_hour: Hour at which the window closes (may wrap midnight).
        sales_window: Date-window policy for receipts.
        max_attempts: Total attempts per run before halting.
        retry_delay_seconds: Fixed delay between attempts.
        http_timeout: Per-request timeout in seconds.
        stock_merge_policy: How per-store stock levels for one variant combine.
        sales_sheet_title: Sheet receiving the sales report.
        inventory_sheet_title: Sheet receiving the inventory report.
        log_sheet_title: Sheet receiving the run log.
        trigger_env_var: Environment variable that classifies the trigger.
    """

    api_token: str
    spreadsheet_id: str
    service_account_info: dict[str, Any] = field(repr=False)
    trigger_secret: str | None = field(default=None, repr=False)
    api_base_url: str = DEFAULT_API_BASE_URL
    timezone: str = DEFAULT_TIMEZONE
    window_start_hour: int = 13
    window_end_hour: int = 1
    sales_window: DateWindowPolicy = field(default_factory=DateWindowPolicy)
    max_attempts: int = 3
    retry_delay_seconds: float = 300.0
    http_timeout: float = 60.0
    stock_merge_policy: StockMergePolicy = StockMergePolicy.LAST
    sales_sheet_title: str = "Sales"
    inventory_sheet_title: str = "Stock"
    log_sheet_title: str = "Logs"
    trigger_env_var: str = "GITHUB_EVENT_NAME"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def now(self) -> datetime:
        """Current time in the configured timezone."""
        return datetime.now(self.tz)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        env_file: str | Path | None = None,
    ) -> SyncConfig:
        """Build and validate configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.
            env_file: Optional dotenv file. It is loaded into ``os.environ``
                when ``environ`` is None, otherwise merged under ``environ``.
                Variables already set take precedence over the file.

        Returns:
            SyncConfig instance.

        Raises:
            ConfigError: If required values are missing or any value is invalid.
        """
        env: Mapping[str, str] = os.environ if environ is None else environ
        if env_file is not None:
            if not Path(env_file).exists():
                raise ConfigError(f"Env file not found: {env_file}")
            if environ is None:
                load_dotenv(env_file, override=False)
            else:
                file_values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
                env = {**file_values, **environ}

        missing = [name for name in ("LOYVERSE_API_KEY", "SHEET_ID") if not env.get(name)]
        key_file = env.get("GOOGLE_SERVICE_ACCOUNT_FILE")
        if not key_file:
            missing.extend(
                name
                for name in ("GOOGLE_SERVICE_ACCOUNT_EMAIL", "GOOGLE_PRIVATE_KEY")
                if not env.get(name)
            )
        if missing:
            raise ConfigError(
                "Missing required environment variables: " + ", ".join(missing)
            )

        if key_file:
            service_account_info = _load_key_file(Path(key_file))
        else:
            service_account_info = {
                "type": "service_account",
                "client_email": env["GOOGLE_SERVICE_ACCOUNT_EMAIL"],
                "private_key": env["GOOGLE_PRIVATE_KEY"].replace("\\n", "\n"),
                "token_uri": GOOGLE_TOKEN_URI,
            }

        timezone = env.get("POS_TIMEZONE", DEFAULT_TIMEZONE)
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone '{timezone}'") from e

        start_hour = _int_setting(env, "SYNC_WINDOW_START_HOUR", 13)
        end_hour = _int_setting(env, "SYNC_WINDOW_END_HOUR", 1)
        for name, hour in (("SYNC_WINDOW_START_HOUR", start_hour), ("SYNC_WINDOW_END_HOUR", end_hour)):
            if not 0 <= hour <= 23:
                raise ConfigError(f"{name} must be between 0 and 23, got {hour}")

        max_attempts = _int_setting(env, "SYNC_MAX_ATTEMPTS", 3)
        if max_attempts < 1:
            raise ConfigError("SYNC_MAX_ATTEMPTS must be at least 1")

        merge_name = env.get("STOCK_MERGE_POLICY", StockMergePolicy.LAST.value)
        try:
            merge_policy = StockMergePolicy(merge_name.lower())
        except ValueError as e:
            choices = ", ".join(p.value for p in StockMergePolicy)
            raise ConfigError(f"Invalid STOCK_MERGE_POLICY '{merge_name}'. Use one of: {choices}") from e

        config = cls(
            api_token=env["LOYVERSE_API_KEY"],
            spreadsheet_id=env["SHEET_ID"],
            service_account_info=service_account_info,
            trigger_secret=env.get("TRIGGER_SECRET") or None,
            api_base_url=env.get("POS_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
            timezone=timezone,
            window_start_hour=start_hour,
            window_end_hour=end_hour,
            sales_window=DateWindowPolicy.parse(env.get("SALES_WINDOW", "months:1")),
            max_attempts=max_attempts,
            retry_delay_seconds=_float_setting(env, "SYNC_RETRY_DELAY_SECONDS", 300.0),
            http_timeout=_float_setting(env, "POS_HTTP_TIMEOUT", 60.0),
            stock_merge_policy=merge_policy,
            sales_sheet_title=env.get("SALES_SHEET_TITLE", "Sales"),
            inventory_sheet_title=env.get("INVENTORY_SHEET_TITLE", "Stock"),
            log_sheet_title=env.get("LOG_SHEET_TITLE", "Logs"),
            trigger_env_var=env.get("TRIGGER_ENV_VAR", "GITHUB_EVENT_NAME"),
        )
        logger.debug("Loaded configuration: %s", config)
        return config


def _load_key_file(path: Path) -> dict[str, Any]:
    try:
        info = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read service-account key file {path}: {e}") from e
    if not isinstance(info, dict) or "client_email" not in info or "private_key" not in info:
        raise ConfigError(f"Service-account key file {path} lacks client_email/private_key")
    return info


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value
