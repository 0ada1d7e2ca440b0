from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from trade_dashboard.models import SIDE_LONG, SIDE_SHORT, Payout, Trade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    trades: list[Trade]
    skipped: int = 0
    payouts: list[Payout] = field(default_factory=list)
    reset_dates: dict[str, datetime] = field(default_factory=dict)


def load_trades(path: str | Path) -> IngestResult:
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix == ".json":
        return _load_trades_json(source_path)
    if suffix in {".csv", ".tsv"}:
        return _load_trades_csv(source_path, delimiter="\t" if suffix == ".tsv" else ",")
    raise ValueError(f"Unsupported file type: {source_path.suffix}")


def load_trades_payload(payload: Any) -> IngestResult:
    records = _extract_records(payload)
    trades, skipped = normalize_records(records)
    accounts = payload.get("accounts") if isinstance(payload, dict) else None
    payouts, reset_dates = normalize_accounts(accounts or [])
    return IngestResult(trades=trades, skipped=skipped, payouts=payouts, reset_dates=reset_dates)


def _load_trades_json(path: Path) -> IngestResult:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return load_trades_payload(payload)


def _load_trades_csv(path: Path, delimiter: str) -> IngestResult:
    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle, delimiter=delimiter)
        trades, skipped = normalize_records(reader)
    return IngestResult(trades=trades, skipped=skipped)


def _extract_records(payload: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("trades", "data", "result"):
            if key in payload and isinstance(payload[key], list):
                return payload[key]
    raise ValueError("Unsupported JSON format for trades payload")


def normalize_records(records: Iterable[Mapping[str, Any]]) -> tuple[list[Trade], int]:
    """Coerce raw trade-like rows into Trades.

    Rows that cannot be turned into a well-formed Trade are dropped and
    counted; they never raise. Downstream aggregation can therefore assume
    positive prices and quantities and timezone-aware dates.
    """
    trades: list[Trade] = []
    skipped = 0
    for index, raw in enumerate(records):
        if not isinstance(raw, Mapping):
            skipped += 1
            continue
        try:
            trades.append(normalize_trade(raw, fallback_id=str(index)))
        except ValueError as exc:
            skipped += 1
            logger.debug("Dropping trade row %s: %s", index, exc)
    if skipped:
        logger.info("Normalized %d trades, dropped %d rows", len(trades), skipped)
    return trades, skipped


def normalize_trade(raw: Mapping[str, Any], *, fallback_id: str | None = None) -> Trade:
    instrument = _pick(raw, "instrument", "symbol")
    if instrument is None or not str(instrument).strip():
        raise ValueError("Missing instrument")

    quantity = _positive(_pick(raw, "quantity", "qty", "size"), "quantity")
    entry_price = _positive(_pick(raw, "entryPrice", "entry_price"), "entryPrice")
    close_price = _positive(_pick(raw, "closePrice", "close_price", "exitPrice", "exit_price"), "closePrice")
    entry_date = _parse_timestamp(_pick(raw, "entryDate", "entry_date", "entryTime", "entry_time"))
    close_date = _parse_timestamp(_pick(raw, "closeDate", "close_date", "exitTime", "exit_time"))
    if close_date < entry_date:
        raise ValueError("closeDate before entryDate")

    side = _normalize_side(_pick(raw, "side", "direction"))
    pnl = _to_float(_pick(raw, "pnl", "realized_pnl", "realizedPnl"), default=0.0)
    commission = _to_float(_pick(raw, "commission", "fees", "fee"), default=0.0)
    if commission < 0:
        raise ValueError("Negative commission")

    trade_id = _pick(raw, "id", "trade_id", "tradeId")
    if trade_id is None:
        trade_id = fallback_id
    if trade_id is None:
        raise ValueError("Missing id")
    account_number = _pick(raw, "accountNumber", "account_number", "account")

    return Trade(
        trade_id=str(trade_id),
        account_number=str(account_number) if account_number is not None else "",
        instrument=str(instrument).strip(),
        side=side,
        quantity=quantity,
        entry_price=entry_price,
        close_price=close_price,
        entry_date=entry_date,
        close_date=close_date,
        pnl=pnl,
        commission=commission,
        time_in_position=int((close_date - entry_date).total_seconds()),
        tags=_parse_tags(raw.get("tags")),
        comment=_optional_str(_pick(raw, "comment")),
        video_url=_optional_str(_pick(raw, "videoUrl", "video_url")),
        image_base64=_optional_str(_pick(raw, "imageBase64", "image_base64")),
    )


def normalize_accounts(accounts: Iterable[Any]) -> tuple[list[Payout], dict[str, datetime]]:
    """Read payouts and reset dates from account records.

    Each account looks like ``{"number": ..., "resetDate": ..., "payouts":
    [{"date": ..., "amount": ..., "status": ...}]}``. Malformed accounts and
    payouts are dropped the same way trade rows are.
    """
    payouts: list[Payout] = []
    reset_dates: dict[str, datetime] = {}
    for index, account in enumerate(accounts):
        if not isinstance(account, Mapping):
            logger.debug("Dropping account record %s: not a mapping", index)
            continue
        number = _pick(account, "number", "accountNumber", "account_number")
        if number is None:
            logger.debug("Dropping account record %s: missing number", index)
            continue
        number = str(number)
        reset_raw = _pick(account, "resetDate", "reset_date")
        if reset_raw is not None:
            try:
                reset_dates[number] = _parse_timestamp(reset_raw)
            except ValueError as exc:
                logger.debug("Ignoring reset date for %s: %s", number, exc)
        for raw in account.get("payouts") or []:
            try:
                payouts.append(normalize_payout(raw, account_number=number))
            except ValueError as exc:
                logger.debug("Dropping payout for %s: %s", number, exc)
    return payouts, reset_dates


def normalize_payout(raw: Any, *, account_number: str) -> Payout:
    if not isinstance(raw, Mapping):
        raise ValueError("Payout is not a mapping")
    amount = _to_float(_pick(raw, "amount"))
    if amount < 0:
        raise ValueError("Negative payout amount")
    status = str(_pick(raw, "status") or "PAID").strip().upper()
    return Payout(
        account_number=account_number,
        date=_parse_timestamp(_pick(raw, "date")),
        amount=amount,
        status=status,
    )


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _normalize_side(value: Any) -> str:
    if value is None:
        raise ValueError("Missing side")
    text = str(value).strip().lower()
    if text in {"long", "buy", "b"}:
        return SIDE_LONG
    if text in {"short", "sell", "s"}:
        return SIDE_SHORT
    raise ValueError(f"Unknown side: {value}")


def _positive(value: Any, name: str) -> float:
    number = _to_float(value)
    if number <= 0:
        raise ValueError(f"Non-positive {name}")
    return number


def _to_float(value: Any, default: float | None = None) -> float:
    if value is None:
        if default is None:
            raise ValueError("Missing numeric field")
        return default
    if isinstance(value, bool):
        raise ValueError("Invalid numeric field")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid numeric field") from exc
    if number != number or number in (float("inf"), float("-inf")):
        raise ValueError("Non-finite numeric field")
    return number


def _parse_timestamp(value: Any) -> datetime:
    if value is None:
        raise ValueError("Missing timestamp")

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    try:
        numeric = float(text)
        return _timestamp_from_number(numeric)
    except ValueError:
        pass

    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError("Unsupported timestamp format") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _timestamp_from_number(value: float) -> datetime:
    seconds = value / 1000.0 if value > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError("Timestamp out of range") from exc


def _parse_tags(value: Any) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [str(item) for item in value]
    else:
        return frozenset()
    return frozenset(item.strip() for item in items if item and item.strip())


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
