from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from trade_dashboard.models import CalendarData, DailyAggregate, Trade


@lru_cache(maxsize=64)
def resolve_timezone(name: str) -> tzinfo:
    cleaned = (name or "").strip()
    if not cleaned or cleaned.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc


def to_local(timestamp: datetime, tz_name: str) -> datetime:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(resolve_timezone(tz_name))


def day_key(timestamp: datetime, tz_name: str) -> str:
    return to_local(timestamp, tz_name).date().isoformat()


def trade_sort_key(trade: Trade) -> tuple[datetime, str]:
    return trade.entry_date, trade.trade_id


def aggregate_daily(trades: Iterable[Trade], tz_name: str = "UTC") -> CalendarData:
    """Bucket trades by the calendar day of their entry in ``tz_name``.

    Each bucket is rebuilt from its trades sorted by entry date and id and
    summed with ``math.fsum``, so the result does not depend on input order.
    """
    resolve_timezone(tz_name)
    buckets: dict[str, list[Trade]] = defaultdict(list)
    for trade in trades:
        buckets[day_key(trade.entry_date, tz_name)].append(trade)

    calendar: CalendarData = {}
    for key in sorted(buckets):
        ordered = tuple(sorted(buckets[key], key=trade_sort_key))
        long_number = sum(1 for trade in ordered if trade.is_long)
        calendar[key] = DailyAggregate(
            date=key,
            pnl=math.fsum(trade.net_pnl for trade in ordered),
            trade_number=len(ordered),
            long_number=long_number,
            short_number=len(ordered) - long_number,
            trades=ordered,
        )
    return calendar


def account_pnl_for_day(aggregate: DailyAggregate) -> list[tuple[str, float]]:
    totals: dict[str, float] = defaultdict(float)
    for trade in aggregate.trades:
        totals[trade.account_number or "Unknown"] += trade.net_pnl
    return sorted(totals.items(), key=lambda pair: (-abs(pair[1]), pair[0]))


def trading_days(
    calendar_data: CalendarData,
    min_pnl_to_count_as_day: float | None = None,
) -> tuple[int, int]:
    total = len(calendar_data)
    if min_pnl_to_count_as_day is None or min_pnl_to_count_as_day <= 0:
        return total, total
    valid = sum(1 for bucket in calendar_data.values() if bucket.pnl >= min_pnl_to_count_as_day)
    return total, valid
