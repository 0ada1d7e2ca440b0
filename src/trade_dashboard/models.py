from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

Side = str

SIDE_LONG: Side = "long"
SIDE_SHORT: Side = "short"


@dataclass(frozen=True)
class Trade:
    trade_id: str
    account_number: str
    instrument: str
    side: Side
    quantity: float
    entry_price: float
    close_price: float
    entry_date: datetime
    close_date: datetime
    pnl: float
    commission: float = 0.0
    time_in_position: int = 0
    tags: frozenset[str] = field(default_factory=frozenset)
    comment: str | None = None
    video_url: str | None = None
    image_base64: str | None = None

    @property
    def net_pnl(self) -> float:
        return self.pnl - self.commission

    @property
    def is_long(self) -> bool:
        return self.side == SIDE_LONG


@dataclass(frozen=True)
class DailyAggregate:
    date: str
    pnl: float
    trade_number: int
    long_number: int
    short_number: int
    trades: tuple[Trade, ...] = ()


CalendarData = dict[str, DailyAggregate]


@dataclass(frozen=True)
class EquityPoint:
    date: str
    balance: float
    pnl: float
    trade_number: int
    account_number: str | None = None


@dataclass(frozen=True)
class Payout:
    account_number: str
    date: datetime
    amount: float
    status: str = "PAID"


@dataclass(frozen=True)
class ConsistencyMetrics:
    account_number: str
    total_profit: float
    highest_profit_day: float
    max_allowed_daily_profit: float | None
    is_consistent: bool
    has_enough_data: bool
    has_profitable_data: bool
    total_profitable_days: int
    daily_pnl: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CalendarCell:
    date: date
    in_month: bool
    pnl: float
    trade_number: int
    long_number: int
    short_number: int
    max_drawdown: float
    max_runup: float

    @property
    def key(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class CalendarMonth:
    month_key: str
    month_label: str
    cells: list[CalendarCell]
    weekly_totals: list[float]
    monthly_total: float
    week_starts_on_monday: bool

    @property
    def weeks(self) -> list[list[CalendarCell]]:
        return [self.cells[idx : idx + 7] for idx in range(0, len(self.cells), 7)]


@dataclass(frozen=True)
class WeekSummary:
    week_start: date
    month: int
    pnl: float
    trade_number: int


@dataclass(frozen=True)
class StatisticsSummary:
    nb_trades: int
    nb_win: int
    nb_loss: int
    nb_be: int
    win_rate: float
    loss_rate: float
    breakeven_rate: float
    cumulative_pnl: float
    cumulative_fees: float
    gross_win: float
    gross_losses: float
    profit_factor: float | None
    winning_streak: int
    total_position_time: int
    average_position_time: float
    average_position_time_label: str
    total_payouts: float = 0.0
    nb_payouts: int = 0
