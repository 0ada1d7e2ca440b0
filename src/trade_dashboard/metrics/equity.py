from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Mapping

from trade_dashboard.metrics.daily import day_key, resolve_timezone, to_local
from trade_dashboard.models import EquityPoint, Payout, Trade

GROUP_TOTAL = "total"
GROUP_ACCOUNT = "account"
GROUP_BY_OPTIONS = (GROUP_TOTAL, GROUP_ACCOUNT)

BALANCE_PAYOUT_STATUSES = {"PENDING", "VALIDATED", "PAID"}


@dataclass(frozen=True)
class _Event:
    timestamp: datetime
    account_number: str
    amount: float
    is_trade: bool = False
    is_reset: bool = False


def build_equity_curve(
    trades: Iterable[Trade],
    group_by: str = GROUP_TOTAL,
    tz_name: str = "UTC",
    *,
    payouts: Iterable[Payout] = (),
    reset_dates: Mapping[str, datetime] | None = None,
) -> list[EquityPoint]:
    """Daily running balance over the full trading date range.

    Trades are taken in stable entry-date order. With ``group_by="account"``
    each account gets a point on every day of the shared axis, starting from
    a balance of zero.
    """
    if group_by not in GROUP_BY_OPTIONS:
        raise ValueError(f"Unsupported group_by: {group_by!r}")
    resolve_timezone(tz_name)
    resets = dict(reset_dates or {})

    ordered = [
        trade
        for trade in sorted(trades, key=lambda item: item.entry_date)
        if _after_reset(trade, resets)
    ]
    if not ordered:
        return []

    events = [
        _Event(trade.entry_date, trade.account_number, trade.net_pnl, is_trade=True)
        for trade in ordered
    ]
    accounts = sorted({trade.account_number for trade in ordered})
    for payout in payouts:
        if payout.account_number not in accounts:
            continue
        amount = -payout.amount if payout.status.upper() in BALANCE_PAYOUT_STATUSES else 0.0
        events.append(_Event(_aware(payout.date), payout.account_number, amount))
    for account_number, reset_at in resets.items():
        if account_number in accounts:
            events.append(_Event(_aware(reset_at), account_number, 0.0, is_reset=True))
    # A reset applies before any trade stamped at the same instant.
    events.sort(key=lambda event: (event.timestamp, not event.is_reset))

    by_day: dict[str, list[_Event]] = defaultdict(list)
    for event in events:
        by_day[day_key(event.timestamp, tz_name)].append(event)

    axis = _date_axis(min(by_day), max(by_day))

    if group_by == GROUP_TOTAL:
        return _total_points(axis, by_day, accounts)
    return _account_points(axis, by_day, accounts)


def build_trade_equity(trades: Iterable[Trade], tz_name: str = "UTC") -> list[EquityPoint]:
    ordered = sorted(trades, key=lambda item: item.entry_date)
    balance = 0.0
    points: list[EquityPoint] = []
    for index, trade in enumerate(ordered, start=1):
        balance += trade.net_pnl
        points.append(
            EquityPoint(
                date=to_local(trade.entry_date, tz_name).isoformat(),
                balance=balance,
                pnl=trade.net_pnl,
                trade_number=index,
                account_number=trade.account_number,
            )
        )
    return points


def _total_points(
    axis: list[str],
    by_day: Mapping[str, list[_Event]],
    accounts: list[str],
) -> list[EquityPoint]:
    balances = {account: 0.0 for account in accounts}
    balance = 0.0
    trade_count = 0
    points: list[EquityPoint] = []
    for key in axis:
        day_pnl = 0.0
        for event in by_day.get(key, []):
            if event.is_reset:
                balance -= balances[event.account_number]
                balances[event.account_number] = 0.0
                continue
            balances[event.account_number] += event.amount
            balance += event.amount
            if event.is_trade:
                day_pnl += event.amount
                trade_count += 1
        points.append(EquityPoint(date=key, balance=balance, pnl=day_pnl, trade_number=trade_count))
    return points


def _account_points(
    axis: list[str],
    by_day: Mapping[str, list[_Event]],
    accounts: list[str],
) -> list[EquityPoint]:
    balances = {account: 0.0 for account in accounts}
    counts = {account: 0 for account in accounts}
    points: list[EquityPoint] = []
    for key in axis:
        day_pnl = {account: 0.0 for account in accounts}
        for event in by_day.get(key, []):
            if event.is_reset:
                balances[event.account_number] = 0.0
                continue
            balances[event.account_number] += event.amount
            if event.is_trade:
                day_pnl[event.account_number] += event.amount
                counts[event.account_number] += 1
        for account in accounts:
            points.append(
                EquityPoint(
                    date=key,
                    balance=balances[account],
                    pnl=day_pnl[account],
                    trade_number=counts[account],
                    account_number=account,
                )
            )
    return points


def _after_reset(trade: Trade, resets: Mapping[str, datetime]) -> bool:
    reset_at = resets.get(trade.account_number)
    return reset_at is None or trade.entry_date >= _aware(reset_at)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _date_axis(start_key: str, end_key: str) -> list[str]:
    start = date.fromisoformat(start_key)
    end = date.fromisoformat(end_key)
    days = (end - start).days
    return [(start + timedelta(days=offset)).isoformat() for offset in range(days + 1)]
