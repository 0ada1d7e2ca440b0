import random

import pytest

from trade_dashboard.metrics.daily import account_pnl_for_day, aggregate_daily, day_key, trading_days
from conftest import utc


def test_day_key_uses_configured_timezone():
    assert day_key(utc("2024-03-01T02:00:00"), "America/New_York") == "2024-02-29"
    assert day_key(utc("2024-03-01T02:00:00"), "UTC") == "2024-03-01"
    assert day_key(utc("2024-03-01T20:00:00"), "Asia/Tokyo") == "2024-03-02"


def test_aggregate_daily_buckets_by_local_entry_day(make_trade):
    trades = [
        make_trade("2024-03-01T02:00:00", 100.0),
        make_trade("2024-03-01T15:00:00", -40.0, side="short"),
    ]

    new_york = aggregate_daily(trades, "America/New_York")
    utc_days = aggregate_daily(trades, "UTC")

    assert list(new_york) == ["2024-02-29", "2024-03-01"]
    assert new_york["2024-02-29"].pnl == 100.0
    assert new_york["2024-03-01"].short_number == 1
    assert list(utc_days) == ["2024-03-01"]
    assert utc_days["2024-03-01"].pnl == 60.0
    assert utc_days["2024-03-01"].trade_number == 2
    assert utc_days["2024-03-01"].long_number == 1


def test_aggregate_daily_nets_commission(make_trade):
    calendar = aggregate_daily([make_trade("2024-03-04T10:00:00", 50.0, commission=2.5)])

    assert calendar["2024-03-04"].pnl == 47.5


def test_aggregate_daily_is_order_independent(make_trade):
    trades = [
        make_trade("2024-03-04T10:00:00", 0.1),
        make_trade("2024-03-04T11:00:00", 0.2),
        make_trade("2024-03-04T12:00:00", 0.3),
        make_trade("2024-03-05T09:00:00", -1.25),
        make_trade("2024-03-05T09:00:00", 3.75),
    ]
    expected = aggregate_daily(trades, "Europe/Paris")

    shuffled = list(trades)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert aggregate_daily(shuffled, "Europe/Paris") == expected


def test_bucket_counts_conserve_trades(make_trade):
    trades = [make_trade(f"2024-03-{day:02d}T12:00:00", float(day)) for day in range(1, 11)]

    calendar = aggregate_daily(trades, "America/Chicago")

    assert sum(bucket.trade_number for bucket in calendar.values()) == len(trades)
    for bucket in calendar.values():
        assert bucket.long_number + bucket.short_number == bucket.trade_number


def test_aggregate_daily_empty_and_unknown_timezone(make_trade):
    assert aggregate_daily([], "UTC") == {}
    with pytest.raises(ValueError):
        aggregate_daily([make_trade("2024-03-04T10:00:00", 1.0)], "Mars/Olympus")


def test_account_pnl_for_day_sorted_by_magnitude(make_trade):
    calendar = aggregate_daily(
        [
            make_trade("2024-03-04T10:00:00", 25.0, account="A"),
            make_trade("2024-03-04T11:00:00", -75.0, account="B"),
            make_trade("2024-03-04T12:00:00", 10.0, account=""),
        ]
    )

    assert account_pnl_for_day(calendar["2024-03-04"]) == [("B", -75.0), ("A", 25.0), ("Unknown", 10.0)]


def test_trading_days_counts_valid_days(make_trade):
    calendar = aggregate_daily(
        [
            make_trade("2024-03-04T10:00:00", 100.0),
            make_trade("2024-03-05T10:00:00", 20.0),
            make_trade("2024-03-06T10:00:00", -50.0),
        ]
    )

    assert trading_days(calendar) == (3, 3)
    assert trading_days(calendar, 50.0) == (3, 1)


def test_daily_sum_conserves_net_pnl(make_trade):
    trades = [
        make_trade("2024-03-04T10:00:00", 125.5, commission=3.25),
        make_trade("2024-03-04T23:30:00", -40.0, commission=1.0),
        make_trade("2024-03-06T08:00:00", 12.0),
    ]

    calendar = aggregate_daily(trades, "Asia/Kolkata")

    assert sum(bucket.pnl for bucket in calendar.values()) == sum(trade.net_pnl for trade in trades)
