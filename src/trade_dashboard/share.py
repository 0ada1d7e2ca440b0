from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Mapping

from trade_dashboard.ingest.trades import normalize_records
from trade_dashboard.models import Trade

DEFAULT_TTL_DAYS = 7


@dataclass(frozen=True)
class SharedSnapshot:
    token: str
    created_at: datetime
    expires_at: datetime
    date_from: date | None
    date_to: date | None
    trades: tuple[Trade, ...]
    layout: Mapping[str, Any] = field(default_factory=dict)


def create_snapshot(
    trades: Iterable[Trade],
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    layout: Mapping[str, Any] | None = None,
    now: datetime | None = None,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> SharedSnapshot:
    if ttl_days <= 0:
        raise ValueError("ttl_days must be positive")
    created_at = now or datetime.now(timezone.utc)
    return SharedSnapshot(
        token=secrets.token_urlsafe(16),
        created_at=created_at,
        expires_at=created_at + timedelta(days=ttl_days),
        date_from=date_from,
        date_to=date_to,
        trades=tuple(sorted(trades, key=lambda trade: (trade.entry_date, trade.trade_id))),
        layout=dict(layout or {}),
    )


def is_expired(snapshot: SharedSnapshot, now: datetime | None = None) -> bool:
    current = now or datetime.now(timezone.utc)
    return current >= snapshot.expires_at


def snapshot_to_dict(snapshot: SharedSnapshot) -> dict[str, Any]:
    return {
        "token": snapshot.token,
        "created_at": snapshot.created_at.isoformat(),
        "expires_at": snapshot.expires_at.isoformat(),
        "date_from": snapshot.date_from.isoformat() if snapshot.date_from else None,
        "date_to": snapshot.date_to.isoformat() if snapshot.date_to else None,
        "layout": dict(snapshot.layout),
        "trades": [trade_to_dict(trade) for trade in snapshot.trades],
    }


def snapshot_from_dict(payload: Mapping[str, Any]) -> SharedSnapshot:
    trades, _ = normalize_records(payload.get("trades") or [])
    return SharedSnapshot(
        token=str(payload["token"]),
        created_at=datetime.fromisoformat(str(payload["created_at"])),
        expires_at=datetime.fromisoformat(str(payload["expires_at"])),
        date_from=_optional_date(payload.get("date_from")),
        date_to=_optional_date(payload.get("date_to")),
        trades=tuple(trades),
        layout=dict(payload.get("layout") or {}),
    )


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    return {
        "id": trade.trade_id,
        "accountNumber": trade.account_number,
        "instrument": trade.instrument,
        "side": trade.side,
        "quantity": trade.quantity,
        "entryPrice": trade.entry_price,
        "closePrice": trade.close_price,
        "entryDate": trade.entry_date.isoformat(),
        "closeDate": trade.close_date.isoformat(),
        "pnl": trade.pnl,
        "commission": trade.commission,
        "timeInPosition": trade.time_in_position,
        "tags": sorted(trade.tags),
        "comment": trade.comment,
        "videoUrl": trade.video_url,
        "imageBase64": trade.image_base64,
    }


def _optional_date(value: Any) -> date | None:
    if not value:
        return None
    return date.fromisoformat(str(value))
