from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from trade_dashboard.config.app_config import AppConfig, load_app_config
from trade_dashboard.filters import TradeFilter, apply_filters
from trade_dashboard.ingest.trades import IngestResult, load_trades
from trade_dashboard.logging_setup import setup_logging
from trade_dashboard.metrics.calendar import parse_month
from trade_dashboard.metrics.consistency import evaluate_consistency
from trade_dashboard.metrics.daily import resolve_timezone
from trade_dashboard.models import Trade
from trade_dashboard.payloads import (
    calendar_payload,
    consistency_payload,
    equity_payload,
    statistics_payload,
    trades_payload,
)
from trade_dashboard.share import SharedSnapshot, create_snapshot, is_expired, snapshot_to_dict

logger = logging.getLogger(__name__)

app = FastAPI(title="Trade Dashboard")

_SNAPSHOTS: dict[str, SharedSnapshot] = {}


class ShareRequest(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    layout: dict[str, Any] = Field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_app_config() -> AppConfig:
    return load_app_config()


def get_trade_source(app_config: AppConfig = Depends(get_app_config)) -> IngestResult:
    path = app_config.app.trades_path
    if not path.exists():
        logger.info("Trades file %s not found; serving an empty dashboard.", path)
        return IngestResult(trades=[], skipped=0)
    try:
        return load_trades(path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/calendar")
def calendar_api(
    request: Request,
    app_config: AppConfig = Depends(get_app_config),
    source: IngestResult = Depends(get_trade_source),
) -> dict[str, Any]:
    tz_name = _resolve_tz(request, app_config)
    month_param = request.query_params.get("month")
    month = parse_month(month_param)
    if month_param and month is None:
        raise HTTPException(status_code=400, detail="month must look like YYYY-MM.")
    trades = _filtered_trades(request, source, tz_name)
    if month is None:
        today = _utcnow().date()
        month = date(today.year, today.month, 1)
    monday_param = request.query_params.get("monday")
    week_starts_on_monday = (
        app_config.dashboard.week_starts_on_monday
        if monday_param is None
        else monday_param.strip().lower() in {"1", "true", "yes"}
    )
    payload = calendar_payload(
        trades,
        month,
        tz_name,
        week_starts_on_monday=week_starts_on_monday,
        min_pnl_to_count_as_day=app_config.dashboard.min_pnl_to_count_as_day,
    )
    payload["skipped"] = source.skipped
    return payload


@app.get("/api/equity")
def equity_api(
    request: Request,
    app_config: AppConfig = Depends(get_app_config),
    source: IngestResult = Depends(get_trade_source),
) -> dict[str, Any]:
    tz_name = _resolve_tz(request, app_config)
    group_by = (request.query_params.get("group_by") or app_config.dashboard.group_by).strip().lower()
    trades = _filtered_trades(request, source, tz_name)
    try:
        return equity_payload(
            trades,
            group_by,
            tz_name,
            payouts=source.payouts,
            reset_dates=source.reset_dates,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/consistency")
def consistency_api(
    request: Request,
    app_config: AppConfig = Depends(get_app_config),
    source: IngestResult = Depends(get_trade_source),
) -> dict[str, Any]:
    tz_name = _resolve_tz(request, app_config)
    threshold_param = request.query_params.get("threshold")
    threshold = app_config.dashboard.consistency_threshold
    if threshold_param:
        try:
            threshold = float(threshold_param)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="threshold must be a number.") from exc
    trades = _filtered_trades(request, source, tz_name)
    try:
        return consistency_payload(trades, threshold, tz_name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/statistics")
def statistics_api(
    request: Request,
    app_config: AppConfig = Depends(get_app_config),
    source: IngestResult = Depends(get_trade_source),
) -> dict[str, Any]:
    tz_name = _resolve_tz(request, app_config)
    trades = _filtered_trades(request, source, tz_name)
    payload = statistics_payload(trades, tz_name, payouts=source.payouts, reset_dates=source.reset_dates)
    payload["skipped"] = source.skipped
    return payload


@app.get("/api/trades")
def trades_api(
    request: Request,
    app_config: AppConfig = Depends(get_app_config),
    source: IngestResult = Depends(get_trade_source),
) -> list[dict[str, Any]]:
    tz_name = _resolve_tz(request, app_config)
    return trades_payload(_filtered_trades(request, source, tz_name))


@app.post("/api/share", status_code=201)
def create_share_api(
    payload: ShareRequest,
    request: Request,
    app_config: AppConfig = Depends(get_app_config),
    source: IngestResult = Depends(get_trade_source),
) -> dict[str, Any]:
    tz_name = _resolve_tz(request, app_config)
    if payload.date_from and payload.date_to and payload.date_from > payload.date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to.")
    now = _utcnow()
    _prune_expired(now)
    trades = _filtered_trades(request, source, tz_name)
    window = TradeFilter(date_from=payload.date_from, date_to=payload.date_to)
    snapshot = create_snapshot(
        apply_filters(trades, window, tz_name),
        date_from=payload.date_from,
        date_to=payload.date_to,
        layout=payload.layout,
        now=now,
        ttl_days=app_config.share.ttl_days,
    )
    _SNAPSHOTS[snapshot.token] = snapshot
    logger.info("Created shared view %s with %d trades.", snapshot.token, len(snapshot.trades))
    return {
        "token": snapshot.token,
        "expires_at": snapshot.expires_at.isoformat(),
        "trade_count": len(snapshot.trades),
    }


@app.get("/api/share/{token}")
def get_share_api(
    token: str,
    request: Request,
    app_config: AppConfig = Depends(get_app_config),
) -> dict[str, Any]:
    snapshot = _SNAPSHOTS.get(token)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Shared view not found.")
    if is_expired(snapshot, _utcnow()):
        _SNAPSHOTS.pop(token, None)
        raise HTTPException(status_code=410, detail="Shared view has expired.")
    tz_name = _resolve_tz(request, app_config)
    trades = list(snapshot.trades)
    payload = snapshot_to_dict(snapshot)
    payload["statistics"] = statistics_payload(trades, tz_name)
    payload["consistency"] = [
        {"account_number": item.account_number, "is_consistent": item.is_consistent}
        for item in evaluate_consistency(trades, app_config.dashboard.consistency_threshold, tz_name)
    ]
    return payload


def _prune_expired(now: datetime) -> None:
    expired = [token for token, snapshot in _SNAPSHOTS.items() if is_expired(snapshot, now)]
    for token in expired:
        del _SNAPSHOTS[token]
    if expired:
        logger.info("Dropped %d expired shared views.", len(expired))


def _resolve_tz(request: Request, app_config: AppConfig) -> str:
    tz_name = (request.query_params.get("tz") or app_config.dashboard.timezone).strip()
    try:
        resolve_timezone(tz_name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return tz_name


def _filtered_trades(request: Request, source: IngestResult, tz_name: str) -> list[Trade]:
    filters = TradeFilter.from_query(request.query_params)
    if filters.is_empty:
        return list(source.trades)
    return apply_filters(source.trades, filters, tz_name)


def main() -> None:
    import uvicorn

    setup_logging()
    app_config = load_app_config()
    uvicorn.run(
        "trade_dashboard.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
