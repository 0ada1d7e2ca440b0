from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from trade_dashboard.metrics.calendar import (
    month_grid,
    month_totals_from_weeks,
    shift_month,
    weeks_of_year,
    yearly_total,
)
from trade_dashboard.metrics.consistency import evaluate_consistency, inconsistent_days
from trade_dashboard.metrics.daily import account_pnl_for_day, aggregate_daily, trading_days
from trade_dashboard.metrics.equity import build_equity_curve, build_trade_equity
from trade_dashboard.metrics.summary import (
    compute_side_breakdown,
    compute_statistics,
    compute_time_performance,
    compute_time_range_performance,
)
from trade_dashboard.models import CalendarData, EquityPoint, Payout, Trade
from trade_dashboard.share import trade_to_dict


def calendar_payload(
    trades: list[Trade],
    month: date,
    tz_name: str,
    *,
    week_starts_on_monday: bool = False,
    min_pnl_to_count_as_day: float | None = None,
) -> dict[str, Any]:
    calendar_data = aggregate_daily(trades, tz_name)
    grid = month_grid(calendar_data, month, week_starts_on_monday)
    weeks = weeks_of_year(calendar_data, month.year, week_starts_on_monday)
    total_days, valid_days = trading_days(calendar_data, min_pnl_to_count_as_day)
    return {
        "timezone": tz_name,
        "month_key": grid.month_key,
        "month_label": grid.month_label,
        "previous_month": shift_month(month, -1).strftime("%Y-%m"),
        "next_month": shift_month(month, 1).strftime("%Y-%m"),
        "week_starts_on_monday": grid.week_starts_on_monday,
        "monthly_total": grid.monthly_total,
        "weekly_totals": grid.weekly_totals,
        "weeks": [
            [
                {
                    "date": cell.key,
                    "day": cell.date.day,
                    "in_month": cell.in_month,
                    "pnl": cell.pnl,
                    "trade_number": cell.trade_number,
                    "long_number": cell.long_number,
                    "short_number": cell.short_number,
                    "max_drawdown": cell.max_drawdown,
                    "max_runup": cell.max_runup,
                }
                for cell in week
            ]
            for week in grid.weeks
        ],
        "year_weeks": [
            {
                "week_start": week.week_start.isoformat(),
                "month": week.month,
                "pnl": week.pnl,
                "trade_number": week.trade_number,
            }
            for week in weeks
        ],
        "month_totals": {str(key): value for key, value in month_totals_from_weeks(weeks).items()},
        "yearly_total": yearly_total(calendar_data, month.year),
        "days": calendar_days_payload(calendar_data),
        "trading_days": {"total": total_days, "valid": valid_days},
    }


def calendar_days_payload(calendar_data: CalendarData) -> dict[str, dict[str, Any]]:
    return {
        key: {
            "pnl": bucket.pnl,
            "trade_number": bucket.trade_number,
            "long_number": bucket.long_number,
            "short_number": bucket.short_number,
            "trade_ids": [trade.trade_id for trade in bucket.trades],
            "accounts": [
                {"account_number": account, "pnl": pnl} for account, pnl in account_pnl_for_day(bucket)
            ],
        }
        for key, bucket in calendar_data.items()
    }


def equity_payload(
    trades: list[Trade],
    group_by: str,
    tz_name: str,
    *,
    payouts: Iterable[Payout] = (),
    reset_dates: Mapping[str, datetime] | None = None,
) -> dict[str, Any]:
    points = build_equity_curve(trades, group_by, tz_name, payouts=payouts, reset_dates=reset_dates)
    return {
        "group_by": group_by,
        "timezone": tz_name,
        "accounts": sorted({trade.account_number for trade in trades}),
        "points": [equity_point_payload(point) for point in points],
        "trade_points": [equity_point_payload(point) for point in build_trade_equity(trades, tz_name)],
    }


def equity_point_payload(point: EquityPoint) -> dict[str, Any]:
    return asdict(point)


def consistency_payload(trades: list[Trade], threshold: float, tz_name: str) -> dict[str, Any]:
    rows = []
    for metrics in evaluate_consistency(trades, threshold, tz_name):
        row = asdict(metrics)
        row["inconsistent_days"] = inconsistent_days(metrics)
        rows.append(row)
    return {"threshold": threshold, "timezone": tz_name, "accounts": rows}


def statistics_payload(
    trades: list[Trade],
    tz_name: str,
    *,
    payouts: Iterable[Payout] = (),
    reset_dates: Mapping[str, datetime] | None = None,
) -> dict[str, Any]:
    return {
        "timezone": tz_name,
        "summary": asdict(compute_statistics(trades, payouts, reset_dates)),
        "time_performance": compute_time_performance(trades, tz_name),
        "side": compute_side_breakdown(trades),
        "time_range": compute_time_range_performance(trades),
    }


def trades_payload(trades: Iterable[Trade]) -> list[dict[str, Any]]:
    return [trade_to_dict(trade) for trade in trades]
