from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any

from trade_dashboard.config.app_config import load_app_config
from trade_dashboard.filters import TradeFilter, apply_filters
from trade_dashboard.ingest.trades import load_trades
from trade_dashboard.logging_setup import setup_logging
from trade_dashboard.metrics.calendar import parse_month
from trade_dashboard.metrics.daily import resolve_timezone, to_local
from trade_dashboard.metrics.equity import GROUP_BY_OPTIONS
from trade_dashboard.models import Trade
from trade_dashboard.payloads import (
    calendar_payload,
    consistency_payload,
    equity_payload,
    statistics_payload,
)

COMMANDS = ("calendar", "equity", "consistency", "summary")


def main(argv: list[str] | None = None) -> int:
    app_config = load_app_config()
    dashboard = app_config.dashboard

    parser = argparse.ArgumentParser(description="Trading performance views from a trade export.")
    parser.add_argument("command", choices=COMMANDS, help="View to compute.")
    parser.add_argument(
        "trades_path",
        type=Path,
        nargs="?",
        default=None,
        help="Path to trade export (json/csv/tsv). Defaults to the configured trades_path.",
    )
    parser.add_argument("--timezone", type=str, default=dashboard.timezone, help="IANA timezone for day bucketing.")
    parser.add_argument(
        "--threshold",
        type=float,
        default=dashboard.consistency_threshold,
        help="Consistency threshold as a percentage of total profit.",
    )
    parser.add_argument(
        "--group-by",
        choices=GROUP_BY_OPTIONS,
        default=dashboard.group_by,
        help="Equity curve grouping.",
    )
    parser.add_argument("--month", type=str, default=None, help="Calendar month as YYYY-MM.")
    parser.add_argument(
        "--monday",
        action="store_true",
        default=dashboard.week_starts_on_monday,
        help="Start calendar weeks on Monday.",
    )
    parser.add_argument("--account", action="append", default=None, help="Only include this account (repeatable).")
    parser.add_argument("--instrument", action="append", default=None, help="Only include this instrument (repeatable).")
    parser.add_argument("--from", dest="date_from", type=str, default=None, help="First entry day (YYYY-MM-DD).")
    parser.add_argument("--to", dest="date_to", type=str, default=None, help="Last entry day (YYYY-MM-DD).")
    parser.add_argument("--json", action="store_true", help="Print JSON output.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    parser.add_argument("--verbose", action="store_true", help="Log normalization details.")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        resolve_timezone(args.timezone)
    except ValueError as exc:
        parser.error(str(exc))
    if not 0 < args.threshold <= 100:
        parser.error("--threshold must be in (0, 100].")
    month = None
    if args.month:
        month = parse_month(args.month)
        if month is None:
            parser.error("--month must look like YYYY-MM.")

    trades_path = args.trades_path or app_config.app.trades_path
    try:
        result = load_trades(trades_path)
    except (OSError, ValueError) as exc:
        parser.error(f"Cannot read {trades_path}: {exc}")

    if result.skipped:
        print(f"Skipped {result.skipped} trade rows during normalization.", file=sys.stderr)

    filters = TradeFilter.from_query(
        {
            "account": args.account,
            "instrument": args.instrument,
            "from": args.date_from,
            "to": args.date_to,
        }
    )
    trades = apply_filters(result.trades, filters, args.timezone)

    if args.command == "calendar":
        if month is None:
            month = _latest_month(trades, args.timezone)
        payload = calendar_payload(
            trades,
            month,
            args.timezone,
            week_starts_on_monday=args.monday,
            min_pnl_to_count_as_day=dashboard.min_pnl_to_count_as_day,
        )
        formatter = _format_calendar
    elif args.command == "equity":
        payload = equity_payload(
            trades,
            args.group_by,
            args.timezone,
            payouts=result.payouts,
            reset_dates=result.reset_dates,
        )
        formatter = _format_equity
    elif args.command == "consistency":
        payload = consistency_payload(trades, args.threshold, args.timezone)
        formatter = _format_consistency
    else:
        payload = statistics_payload(
            trades,
            args.timezone,
            payouts=result.payouts,
            reset_dates=result.reset_dates,
        )
        formatter = _format_summary

    if args.json or (args.out is not None and args.out.suffix.lower() == ".json"):
        text = json.dumps(payload, indent=2, sort_keys=True)
    else:
        text = formatter(payload)

    if args.out is None:
        print(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")
    return 0


def _latest_month(trades: list[Trade], tz_name: str) -> date:
    if not trades:
        today = date.today()
        return date(today.year, today.month, 1)
    latest = to_local(max(trade.entry_date for trade in trades), tz_name)
    return date(latest.year, latest.month, 1)


def _format_calendar(payload: dict[str, Any]) -> str:
    lines = [f"{payload['month_label']} ({payload['timezone']})"]
    for week, total in zip(payload["weeks"], payload["weekly_totals"]):
        days = " ".join(
            f"{cell['day']:>2}:{_format_float(cell['pnl']) if cell['trade_number'] else '-'}"
            for cell in week
        )
        lines.append(f"{days} | week {_format_float(total)}")
    lines.append(f"monthly_total {_format_float(payload['monthly_total'])}")
    trading = payload["trading_days"]
    lines.append(f"trading_days {trading['total']} valid {trading['valid']}")
    return "\n".join(lines)


def _format_equity(payload: dict[str, Any]) -> str:
    lines = ["date account balance pnl trade_number"]
    for point in payload["points"]:
        account = point["account_number"] or payload["group_by"]
        lines.append(
            f"{point['date']} {account} {_format_float(point['balance'])} "
            f"{_format_float(point['pnl'])} {point['trade_number']}"
        )
    return "\n".join(lines)


def _format_consistency(payload: dict[str, Any]) -> str:
    lines = [f"threshold {_format_float(payload['threshold'])}%"]
    for row in payload["accounts"]:
        lines.append(
            f"{row['account_number']} total_profit {_format_float(row['total_profit'])} "
            f"highest_day {_format_float(row['highest_profit_day'])} "
            f"max_allowed {_format_float(row['max_allowed_daily_profit'])} "
            f"profitable_days {row['total_profitable_days']} "
            f"consistent {'yes' if row['is_consistent'] else 'no'}"
        )
        for day in row["inconsistent_days"]:
            lines.append(f"  {day['date']} {_format_float(day['pnl'])} ({_format_float(day['percentage_of_total'])}%)")
    return "\n".join(lines)


def _format_summary(payload: dict[str, Any]) -> str:
    summary = payload["summary"]
    lines = [
        f"nb_trades {summary['nb_trades']}",
        f"nb_win {summary['nb_win']}",
        f"nb_loss {summary['nb_loss']}",
        f"nb_be {summary['nb_be']}",
        f"win_rate {_format_float(summary['win_rate'])}",
        f"loss_rate {_format_float(summary['loss_rate'])}",
        f"breakeven_rate {_format_float(summary['breakeven_rate'])}",
        f"cumulative_pnl {_format_float(summary['cumulative_pnl'])}",
        f"cumulative_fees {_format_float(summary['cumulative_fees'])}",
        f"gross_win {_format_float(summary['gross_win'])}",
        f"gross_losses {_format_float(summary['gross_losses'])}",
        f"profit_factor {_format_float(summary['profit_factor'])}",
        f"winning_streak {summary['winning_streak']}",
        f"average_position_time {summary['average_position_time_label']}",
        f"total_payouts {_format_float(summary['total_payouts'])}",
        f"nb_payouts {summary['nb_payouts']}",
    ]
    for row in payload["side"]:
        lines.append(f"side {row['bucket']} count {row['count']} total_pnl {_format_float(row['total_pnl'])}")
    return "\n".join(lines)


def _format_float(value: float | None) -> str:
    return "na" if value is None else f"{value:.6g}"


if __name__ == "__main__":
    raise SystemExit(main())
