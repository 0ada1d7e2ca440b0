from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Mapping

from trade_dashboard.metrics.daily import resolve_timezone, to_local, trade_sort_key
from trade_dashboard.models import SIDE_LONG, SIDE_SHORT, Payout, StatisticsSummary, Trade

Outcome = str

OUTCOME_WIN: Outcome = "win"
OUTCOME_LOSS: Outcome = "loss"
OUTCOME_BREAKEVEN: Outcome = "breakeven"

TIME_RANGE_BUCKETS: tuple[tuple[str, float | None], ...] = (
    ("under1min", 60),
    ("1to5min", 5 * 60),
    ("5to10min", 10 * 60),
    ("10to15min", 15 * 60),
    ("15to30min", 30 * 60),
    ("30to60min", 60 * 60),
    ("1to2hours", 2 * 3600),
    ("2to5hours", 5 * 3600),
    ("over5hours", None),
)

BucketRow = dict[str, float | int | str]


def classify_outcome(pnl: float) -> Outcome:
    # Exact comparison: a trade is breakeven only when pnl is exactly zero.
    if pnl == 0:
        return OUTCOME_BREAKEVEN
    return OUTCOME_WIN if pnl > 0 else OUTCOME_LOSS


def compute_statistics(
    trades: Iterable[Trade],
    payouts: Iterable[Payout] = (),
    reset_dates: Mapping[str, datetime] | None = None,
) -> StatisticsSummary:
    trade_list = list(trades)
    nb_trades = len(trade_list)
    outcomes = [classify_outcome(trade.pnl) for trade in trade_list]
    nb_win = outcomes.count(OUTCOME_WIN)
    nb_loss = outcomes.count(OUTCOME_LOSS)
    nb_be = outcomes.count(OUTCOME_BREAKEVEN)

    decided = nb_win + nb_loss
    gross_win = math.fsum(trade.pnl for trade in trade_list if trade.pnl > 0)
    gross_losses = math.fsum(abs(trade.pnl) for trade in trade_list if trade.pnl < 0)
    profit_factor = gross_win / gross_losses if gross_losses > 0 else None

    total_position_time = sum(trade.time_in_position for trade in trade_list)
    average_position_time = average_time_in_position(trade_list)
    counted_payouts = _counted_payouts(trade_list, payouts, reset_dates or {})

    return StatisticsSummary(
        nb_trades=nb_trades,
        nb_win=nb_win,
        nb_loss=nb_loss,
        nb_be=nb_be,
        win_rate=_ratio(nb_win, decided) * 100,
        loss_rate=_ratio(nb_loss, decided) * 100,
        breakeven_rate=_ratio(nb_be, nb_trades) * 100,
        cumulative_pnl=math.fsum(trade.pnl for trade in trade_list),
        cumulative_fees=math.fsum(trade.commission for trade in trade_list),
        gross_win=gross_win,
        gross_losses=gross_losses,
        profit_factor=profit_factor,
        winning_streak=winning_streak(trade_list),
        total_position_time=total_position_time,
        average_position_time=average_position_time,
        average_position_time_label=format_position_time(average_position_time),
        total_payouts=math.fsum(payout.amount for payout in counted_payouts),
        nb_payouts=len(counted_payouts),
    )


def _counted_payouts(
    trades: list[Trade],
    payouts: Iterable[Payout],
    reset_dates: Mapping[str, datetime],
) -> list[Payout]:
    # Only accounts present in the trades, and only payouts on or after a reset.
    accounts = {trade.account_number for trade in trades}
    counted = []
    for payout in payouts:
        if payout.account_number not in accounts:
            continue
        reset_at = reset_dates.get(payout.account_number)
        if reset_at is not None and _aware(payout.date) < _aware(reset_at):
            continue
        counted.append(payout)
    return counted


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def winning_streak(trades: Iterable[Trade]) -> int:
    longest = 0
    current = 0
    for trade in sorted(trades, key=trade_sort_key):
        if trade.pnl > 0:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def average_time_in_position(trades: Iterable[Trade]) -> float:
    values = [trade.time_in_position for trade in trades]
    if not values:
        return 0.0
    return sum(values) / len(values)


def format_position_time(seconds: float) -> str:
    total = int(round(seconds)) if seconds and seconds > 0 else 0
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = [f"{hours}h"] if hours else []
    parts.extend([f"{minutes}m", f"{secs}s"])
    return " ".join(parts)


def time_range_key(time_in_position: float) -> str:
    for key, upper in TIME_RANGE_BUCKETS:
        if upper is None or time_in_position < upper:
            return key
    return TIME_RANGE_BUCKETS[-1][0]


def compute_time_performance(trades: Iterable[Trade], tz_name: str = "UTC") -> dict[str, list[BucketRow]]:
    resolve_timezone(tz_name)
    hourly: dict[int, list[float]] = defaultdict(list)
    weekday: dict[int, list[float]] = defaultdict(list)
    for trade in trades:
        entry_local = to_local(trade.entry_date, tz_name)
        hourly[entry_local.hour].append(trade.net_pnl)
        weekday[entry_local.weekday()].append(trade.net_pnl)
    return {
        "hourly": [_bucket_summary(hour, values) for hour, values in sorted(hourly.items())],
        "weekday": [_bucket_summary(day, values) for day, values in sorted(weekday.items())],
    }


def compute_side_breakdown(trades: Iterable[Trade]) -> list[BucketRow]:
    buckets: dict[str, list[float]] = {SIDE_LONG: [], SIDE_SHORT: []}
    for trade in trades:
        buckets.setdefault(trade.side, []).append(trade.net_pnl)
    return [_bucket_summary(side, values) for side, values in buckets.items()]


def compute_time_range_performance(trades: Iterable[Trade]) -> list[BucketRow]:
    buckets: dict[str, list[float]] = {key: [] for key, _ in TIME_RANGE_BUCKETS}
    for trade in trades:
        buckets[time_range_key(trade.time_in_position)].append(trade.net_pnl)
    return [_bucket_summary(key, values) for key, values in buckets.items() if values]


def _bucket_summary(key: int | str, values: list[float]) -> BucketRow:
    wins = sum(1 for value in values if value > 0)
    total = len(values)
    return {
        "bucket": key,
        "count": total,
        "total_pnl": math.fsum(values),
        "avg_pnl": math.fsum(values) / total if total else 0.0,
        "win_rate": wins / total * 100 if total else 0.0,
    }


def _ratio(numerator: int, denominator: int) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator
