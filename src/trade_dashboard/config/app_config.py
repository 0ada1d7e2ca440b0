from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

from trade_dashboard.metrics.consistency import DEFAULT_THRESHOLD
from trade_dashboard.metrics.daily import resolve_timezone
from trade_dashboard.metrics.equity import GROUP_BY_OPTIONS, GROUP_TOTAL
from trade_dashboard.share import DEFAULT_TTL_DAYS

CONFIG_ENV_VAR = "TRADE_DASHBOARD_CONFIG"


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    reload: bool
    trades_path: Path


@dataclass(frozen=True)
class DashboardSettings:
    timezone: str
    week_starts_on_monday: bool
    consistency_threshold: float
    group_by: str
    min_pnl_to_count_as_day: float | None


@dataclass(frozen=True)
class ShareSettings:
    ttl_days: int


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    dashboard: DashboardSettings
    share: ShareSettings


def load_app_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if env is None else env
    config_path = Path(path or env.get(CONFIG_ENV_VAR, "config/app.toml"))
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    dashboard_raw = _section(raw, "dashboard")
    share_raw = _section(raw, "share")

    app = AppSettings(
        host=str(app_raw.get("host", "127.0.0.1")),
        port=_int_or_default(app_raw.get("port"), 8000),
        reload=bool(app_raw.get("reload", False)),
        trades_path=Path(app_raw.get("trades_path", "data/trades.json")),
    )

    timezone_name = str(dashboard_raw.get("timezone", "UTC")).strip() or "UTC"
    resolve_timezone(timezone_name)

    threshold = _float_or_default(dashboard_raw.get("consistency_threshold"), DEFAULT_THRESHOLD)
    if not 0 < threshold <= 100:
        threshold = DEFAULT_THRESHOLD

    group_by = str(dashboard_raw.get("group_by", GROUP_TOTAL)).strip().lower()
    if group_by not in GROUP_BY_OPTIONS:
        group_by = GROUP_TOTAL

    dashboard = DashboardSettings(
        timezone=timezone_name,
        week_starts_on_monday=bool(dashboard_raw.get("week_starts_on_monday", False)),
        consistency_threshold=threshold,
        group_by=group_by,
        min_pnl_to_count_as_day=_float_or_none(dashboard_raw.get("min_pnl_to_count_as_day")),
    )

    ttl_days = _int_or_default(share_raw.get("ttl_days"), DEFAULT_TTL_DAYS)
    share = ShareSettings(ttl_days=ttl_days if ttl_days > 0 else DEFAULT_TTL_DAYS)

    return AppConfig(app=app, dashboard=dashboard, share=share)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _int_or_default(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float_or_default(value: Any, default: float) -> float:
    parsed = _float_or_none(value)
    return default if parsed is None else parsed


def _float_or_none(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
