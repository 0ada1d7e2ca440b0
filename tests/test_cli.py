import json

import pytest

from trade_dashboard.cli import main
from trade_dashboard.config.app_config import CONFIG_ENV_VAR


def _write_trades(path):
    rows = [
        {
            "id": "t1",
            "accountNumber": "A",
            "instrument": "ES",
            "side": "long",
            "quantity": 1,
            "entryPrice": 100,
            "closePrice": 101,
            "entryDate": "2024-03-01T02:00:00Z",
            "closeDate": "2024-03-01T02:05:00Z",
            "pnl": 50,
            "commission": 2,
        },
        {
            "id": "t2",
            "accountNumber": "B",
            "instrument": "NQ",
            "side": "short",
            "quantity": 1,
            "entryPrice": 100,
            "closePrice": 99,
            "entryDate": "2024-03-04T15:00:00Z",
            "closeDate": "2024-03-04T16:00:00Z",
            "pnl": -20,
        },
        {"id": "broken", "instrument": "ES"},
    ]
    path.write_text(json.dumps(rows), encoding="utf-8")


@pytest.fixture
def trades_file(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "absent.toml"))
    path = tmp_path / "trades.json"
    _write_trades(path)
    return path


def test_summary_json_reports_skipped_rows(trades_file, capsys):
    assert main(["summary", str(trades_file), "--json"]) == 0

    captured = capsys.readouterr()
    payload = json.loads(captured.out)
    assert payload["summary"]["nb_trades"] == 2
    assert payload["summary"]["cumulative_pnl"] == 30.0
    assert "Skipped 1 trade rows" in captured.err


def test_calendar_uses_timezone(trades_file, capsys):
    assert main(["calendar", str(trades_file), "--timezone", "America/New_York", "--month", "2024-02", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["month_key"] == "2024-02"
    assert payload["days"]["2024-02-29"]["pnl"] == 48.0
    assert payload["monthly_total"] == 48.0


def test_equity_by_account_text_output(trades_file, capsys):
    assert main(["equity", str(trades_file), "--group-by", "account"]) == 0

    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0] == "date account balance pnl trade_number"
    assert lines[1] == "2024-03-01 A 48 48 1"
    assert lines[-1] == "2024-03-04 B -20 -20 1"


def test_account_filter_and_out_file(trades_file, tmp_path):
    out_path = tmp_path / "reports" / "consistency.json"

    assert main(["consistency", str(trades_file), "--account", "A", "--out", str(out_path)]) == 0

    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert [row["account_number"] for row in payload["accounts"]] == ["A"]
    assert payload["threshold"] == 30.0


def test_bad_arguments_exit_with_usage_error(trades_file):
    with pytest.raises(SystemExit) as excinfo:
        main(["summary", str(trades_file), "--timezone", "Nowhere/Special"])
    assert excinfo.value.code == 2

    with pytest.raises(SystemExit):
        main(["calendar", str(trades_file), "--month", "March"])

    with pytest.raises(SystemExit):
        main(["consistency", str(trades_file), "--threshold", "0"])


def test_summary_counts_payouts_from_accounts_section(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "absent.toml"))
    path = tmp_path / "export.json"
    path.write_text(
        json.dumps(
            {
                "trades": [
                    {
                        "id": "t1",
                        "accountNumber": "A",
                        "instrument": "ES",
                        "side": "long",
                        "quantity": 1,
                        "entryPrice": 100,
                        "closePrice": 101,
                        "entryDate": "2024-03-01T10:00:00Z",
                        "closeDate": "2024-03-01T10:05:00Z",
                        "pnl": 200,
                    }
                ],
                "accounts": [{"number": "A", "payouts": [{"date": "2024-03-02T10:00:00Z", "amount": 75}]}],
            }
        ),
        encoding="utf-8",
    )

    assert main(["summary", str(path)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert "total_payouts 75" in lines
    assert "nb_payouts 1" in lines

    assert main(["equity", str(path), "--json"]) == 0
    points = json.loads(capsys.readouterr().out)["points"]
    assert points[-1] == {"date": "2024-03-02", "balance": 125.0, "pnl": 0.0, "trade_number": 1, "account_number": None}
