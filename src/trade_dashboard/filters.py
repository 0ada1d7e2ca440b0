from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from trade_dashboard.metrics.daily import resolve_timezone, to_local
from trade_dashboard.metrics.summary import TIME_RANGE_BUCKETS, time_range_key
from trade_dashboard.models import Trade

_TIME_RANGE_KEYS = {key for key, _ in TIME_RANGE_BUCKETS}


@dataclass(frozen=True)
class TradeFilter:
    instruments: frozenset[str] = field(default_factory=frozenset)
    accounts: frozenset[str] = field(default_factory=frozenset)
    hidden_accounts: frozenset[str] = field(default_factory=frozenset)
    date_from: date | None = None
    date_to: date | None = None
    pnl_min: float | None = None
    pnl_max: float | None = None
    time_range: str | None = None
    weekdays: frozenset[int] = field(default_factory=frozenset)
    hour: int | None = None
    tags: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return self == TradeFilter()

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> "TradeFilter":
        """Build a filter from query-string style values.

        List values are comma separated. Unknown or malformed values are
        ignored rather than rejected, the same way the analytics page treats
        stale links.
        """
        time_range = str(params.get("time_range") or "").strip() or None
        if time_range not in _TIME_RANGE_KEYS:
            time_range = None
        hour = _parse_int(params.get("hour"))
        if hour is not None and not 0 <= hour <= 23:
            hour = None
        weekdays = frozenset(
            day
            for day in (_parse_int(item) for item in _split(params.get("weekday")))
            if day is not None and 0 <= day <= 6
        )
        return cls(
            instruments=frozenset(_split(params.get("instrument"))),
            accounts=frozenset(_split(params.get("account"))),
            hidden_accounts=frozenset(_split(params.get("hidden_account"))),
            date_from=_parse_date(params.get("from")),
            date_to=_parse_date(params.get("to")),
            pnl_min=_parse_float(params.get("pnl_min")),
            pnl_max=_parse_float(params.get("pnl_max")),
            time_range=time_range,
            weekdays=weekdays,
            hour=hour,
            tags=frozenset(_split(params.get("tag"))),
        )


def apply_filters(trades: Iterable[Trade], filters: TradeFilter, tz_name: str = "UTC") -> list[Trade]:
    resolve_timezone(tz_name)
    filtered: list[Trade] = []
    for trade in trades:
        if trade.account_number in filters.hidden_accounts:
            continue
        if filters.accounts and trade.account_number not in filters.accounts:
            continue
        if filters.instruments and trade.instrument not in filters.instruments:
            continue
        entry_local = to_local(trade.entry_date, tz_name)
        entry_day = entry_local.date()
        if filters.date_from and entry_day < filters.date_from:
            continue
        if filters.date_to and entry_day > filters.date_to:
            continue
        if filters.pnl_min is not None and trade.pnl < filters.pnl_min:
            continue
        if filters.pnl_max is not None and trade.pnl > filters.pnl_max:
            continue
        if filters.time_range and time_range_key(trade.time_in_position) != filters.time_range:
            continue
        if filters.weekdays and entry_local.weekday() not in filters.weekdays:
            continue
        if filters.hour is not None and entry_local.hour != filters.hour:
            continue
        if filters.tags and not (trade.tags & filters.tags):
            continue
        filtered.append(trade)
    return filtered


def _split(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        items: list[str] = []
        for item in value:
            items.extend(_split(item))
        return items
    return [item.strip() for item in str(value).split(",") if item.strip()]


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError:
        return None


def _parse_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None
