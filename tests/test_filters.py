from datetime import date

from trade_dashboard.filters import TradeFilter, apply_filters


def test_from_query_parses_lists_and_ignores_bad_values():
    filters = TradeFilter.from_query(
        {
            "account": "A, B",
            "instrument": ["ES", "NQ,CL"],
            "from": "2024-03-01",
            "to": "garbage",
            "pnl_min": "-10",
            "hour": "30",
            "weekday": "0,4,9",
            "time_range": "forever",
            "tag": "news",
        }
    )

    assert filters.accounts == frozenset({"A", "B"})
    assert filters.instruments == frozenset({"ES", "NQ", "CL"})
    assert filters.date_from == date(2024, 3, 1)
    assert filters.date_to is None
    assert filters.pnl_min == -10.0
    assert filters.hour is None
    assert filters.weekdays == frozenset({0, 4})
    assert filters.time_range is None
    assert filters.tags == frozenset({"news"})


def test_empty_query_is_empty_filter():
    assert TradeFilter.from_query({}).is_empty
    assert not TradeFilter(hour=3).is_empty


def test_apply_filters_by_account_and_hidden_account(make_trade):
    trades = [
        make_trade("2024-03-04T10:00:00", 1.0, account="A"),
        make_trade("2024-03-04T10:00:00", 2.0, account="B"),
        make_trade("2024-03-04T10:00:00", 3.0, account="C"),
    ]

    kept = apply_filters(trades, TradeFilter(accounts=frozenset({"A", "B"}), hidden_accounts=frozenset({"B"})))

    assert [trade.account_number for trade in kept] == ["A"]


def test_apply_filters_dates_use_local_entry_day(make_trade):
    trade = make_trade("2024-03-01T02:00:00", 1.0)
    window = TradeFilter(date_from=date(2024, 3, 1), date_to=date(2024, 3, 1))

    assert apply_filters([trade], window, "UTC") == [trade]
    assert apply_filters([trade], window, "America/New_York") == []


def test_apply_filters_pnl_time_range_weekday_hour_tags(make_trade):
    scalp = make_trade("2024-03-04T10:15:00", 40.0, duration=30, tags=frozenset({"news"}))
    swing = make_trade("2024-03-05T16:00:00", -20.0, duration=4 * 3600)

    assert apply_filters([scalp, swing], TradeFilter(pnl_min=0.0)) == [scalp]
    assert apply_filters([scalp, swing], TradeFilter(pnl_max=0.0)) == [swing]
    assert apply_filters([scalp, swing], TradeFilter(time_range="2to5hours")) == [swing]
    assert apply_filters([scalp, swing], TradeFilter(weekdays=frozenset({0}))) == [scalp]
    assert apply_filters([scalp, swing], TradeFilter(hour=16)) == [swing]
    assert apply_filters([scalp, swing], TradeFilter(tags=frozenset({"news", "fomc"}))) == [scalp]
