from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Iterable

from trade_dashboard.metrics.daily import trade_sort_key
from trade_dashboard.models import CalendarCell, CalendarData, CalendarMonth, Trade, WeekSummary

GRID_CELLS = 42


def week_start(value: date, week_starts_on_monday: bool = False) -> date:
    offset = value.weekday() if week_starts_on_monday else (value.weekday() + 1) % 7
    return value - timedelta(days=offset)


def monthly_total(calendar_data: CalendarData, month: date) -> float:
    return math.fsum(
        bucket.pnl
        for key, bucket in calendar_data.items()
        if _parse_key(key).year == month.year and _parse_key(key).month == month.month
    )


def yearly_total(calendar_data: CalendarData, year: int) -> float:
    return math.fsum(bucket.pnl for key, bucket in calendar_data.items() if _parse_key(key).year == year)


def weekly_total(
    calendar_data: CalendarData,
    anchor: date,
    week_starts_on_monday: bool = False,
) -> float:
    start = week_start(anchor, week_starts_on_monday)
    return _range_total(calendar_data, start, 7)


def day_drawdown_runup(trades: Iterable[Trade]) -> tuple[float, float]:
    equity = [0.0]
    cumulative = 0.0
    for trade in sorted(trades, key=trade_sort_key):
        cumulative += trade.net_pnl
        equity.append(cumulative)

    peak = equity[0]
    trough = equity[0]
    max_drawdown = 0.0
    max_runup = 0.0
    for value in equity:
        if value > peak:
            peak = value
        if value < trough:
            trough = value
        max_drawdown = max(max_drawdown, peak - value)
        max_runup = max(max_runup, value - trough)
    return max_drawdown, max_runup


def month_grid(
    calendar_data: CalendarData,
    month: date,
    week_starts_on_monday: bool = False,
) -> CalendarMonth:
    """Build the 6x7 grid for the month containing ``month``.

    The grid always starts on the week start on or before the 1st and holds
    42 days, so trailing cells spill into the following month when the month
    spans fewer than six weeks.
    """
    month_start = month.replace(day=1)
    grid_start = week_start(month_start, week_starts_on_monday)

    cells: list[CalendarCell] = []
    for offset in range(GRID_CELLS):
        day = grid_start + timedelta(days=offset)
        bucket = calendar_data.get(day.isoformat())
        if bucket is None:
            cells.append(
                CalendarCell(
                    date=day,
                    in_month=day.month == month_start.month,
                    pnl=0.0,
                    trade_number=0,
                    long_number=0,
                    short_number=0,
                    max_drawdown=0.0,
                    max_runup=0.0,
                )
            )
            continue
        max_drawdown, max_runup = day_drawdown_runup(bucket.trades)
        cells.append(
            CalendarCell(
                date=day,
                in_month=day.month == month_start.month,
                pnl=bucket.pnl,
                trade_number=bucket.trade_number,
                long_number=bucket.long_number,
                short_number=bucket.short_number,
                max_drawdown=max_drawdown,
                max_runup=max_runup,
            )
        )

    weekly_totals = [math.fsum(cell.pnl for cell in cells[idx : idx + 7]) for idx in range(0, GRID_CELLS, 7)]
    return CalendarMonth(
        month_key=month_start.strftime("%Y-%m"),
        month_label=month_start.strftime("%B %Y"),
        cells=cells,
        weekly_totals=weekly_totals,
        monthly_total=monthly_total(calendar_data, month_start),
        week_starts_on_monday=week_starts_on_monday,
    )


def weeks_of_year(
    calendar_data: CalendarData,
    year: int,
    week_starts_on_monday: bool = False,
) -> list[WeekSummary]:
    # Weeks that start in December of the previous year are reported under January.
    cursor = week_start(date(year, 1, 1), week_starts_on_monday)
    last = week_start(date(year, 12, 31), week_starts_on_monday)
    weeks: list[WeekSummary] = []
    while cursor <= last:
        days = [calendar_data.get((cursor + timedelta(days=idx)).isoformat()) for idx in range(7)]
        weeks.append(
            WeekSummary(
                week_start=cursor,
                month=cursor.month if cursor.year == year else 1,
                pnl=math.fsum(bucket.pnl for bucket in days if bucket is not None),
                trade_number=sum(bucket.trade_number for bucket in days if bucket is not None),
            )
        )
        cursor += timedelta(days=7)
    return weeks


def month_totals_from_weeks(weeks: Iterable[WeekSummary]) -> dict[int, float]:
    totals: dict[int, list[float]] = {month: [] for month in range(1, 13)}
    for week in weeks:
        totals[week.month].append(week.pnl)
    return {month: math.fsum(values) for month, values in totals.items()}


def shift_month(value: date, delta: int) -> date:
    year = value.year + (value.month - 1 + delta) // 12
    month = (value.month - 1 + delta) % 12 + 1
    return date(year, month, 1)


def parse_month(value: str | None) -> date | None:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m").date()
    except ValueError:
        return None
    return date(parsed.year, parsed.month, 1)


def _range_total(calendar_data: CalendarData, start: date, days: int) -> float:
    values = []
    for offset in range(days):
        bucket = calendar_data.get((start + timedelta(days=offset)).isoformat())
        if bucket is not None:
            values.append(bucket.pnl)
    return math.fsum(values)


def _parse_key(key: str) -> date:
    return date.fromisoformat(key)
