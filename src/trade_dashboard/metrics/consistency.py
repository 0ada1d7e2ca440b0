from __future__ import annotations

import math
from collections import defaultdict
from typing import Any, Iterable

from trade_dashboard.metrics.daily import day_key, resolve_timezone
from trade_dashboard.models import ConsistencyMetrics, Trade

DEFAULT_THRESHOLD = 30.0
MIN_PROFITABLE_DAYS = 5


def evaluate_consistency(
    trades: Iterable[Trade],
    threshold: float = DEFAULT_THRESHOLD,
    tz_name: str = "UTC",
) -> list[ConsistencyMetrics]:
    """Single-day profit concentration per account.

    Days are summed on gross ``pnl``; commission is ignored here even though
    the calendar nets it. Only days with a positive sum count toward the
    total profit.
    """
    if not 0 < threshold <= 100:
        raise ValueError(f"Consistency threshold must be in (0, 100], got {threshold}")
    resolve_timezone(tz_name)

    daily_by_account: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for trade in sorted(trades, key=lambda item: (item.entry_date, item.trade_id)):
        daily_by_account[trade.account_number][day_key(trade.entry_date, tz_name)] += trade.pnl

    results: list[ConsistencyMetrics] = []
    for account_number in sorted(daily_by_account):
        positive_days = {
            day: pnl for day, pnl in sorted(daily_by_account[account_number].items()) if pnl > 0
        }
        total_profit = math.fsum(positive_days.values())
        total_profitable_days = len(positive_days)
        highest_profit_day = max(positive_days.values(), default=0.0)

        has_enough_data = total_profitable_days >= MIN_PROFITABLE_DAYS
        has_profitable_data = total_profit > 0
        max_allowed = total_profit * (threshold / 100) if has_profitable_data else None
        is_consistent = (
            has_enough_data
            and has_profitable_data
            and max_allowed is not None
            and highest_profit_day <= max_allowed
        )

        results.append(
            ConsistencyMetrics(
                account_number=account_number,
                total_profit=total_profit,
                highest_profit_day=highest_profit_day,
                max_allowed_daily_profit=max_allowed,
                is_consistent=is_consistent,
                has_enough_data=has_enough_data,
                has_profitable_data=has_profitable_data,
                total_profitable_days=total_profitable_days,
                daily_pnl=positive_days,
            )
        )
    return results


def inconsistent_days(metrics: ConsistencyMetrics) -> list[dict[str, Any]]:
    if not metrics.max_allowed_daily_profit:
        return []
    rows = [
        {
            "date": day,
            "pnl": pnl,
            "percentage_of_total": pnl / metrics.total_profit * 100 if metrics.total_profit else 0.0,
        }
        for day, pnl in metrics.daily_pnl.items()
        if pnl > metrics.max_allowed_daily_profit
    ]
    rows.sort(key=lambda row: (-row["pnl"], row["date"]))
    return rows
