import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from trade_dashboard.models import Trade


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            testargs = {arg: pyfuncitem.funcargs[arg] for arg in pyfuncitem._fixtureinfo.argnames}
            loop.run_until_complete(test_function(**testargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


def utc(text: str) -> datetime:
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


@pytest.fixture
def make_trade() -> Callable[..., Trade]:
    counter = {"value": 0}

    def _make(
        entry: str,
        pnl: float,
        *,
        account: str = "ACC-1",
        side: str = "long",
        commission: float = 0.0,
        duration: int = 60,
        instrument: str = "ES",
        trade_id: str | None = None,
        tags: frozenset[str] = frozenset(),
        **extra: Any,
    ) -> Trade:
        counter["value"] += 1
        entry_date = utc(entry)
        return Trade(
            trade_id=trade_id or f"t{counter['value']:03d}",
            account_number=account,
            instrument=instrument,
            side=side,
            quantity=1.0,
            entry_price=100.0,
            close_price=101.0,
            entry_date=entry_date,
            close_date=entry_date + timedelta(seconds=duration),
            pnl=pnl,
            commission=commission,
            time_in_position=duration,
            tags=tags,
            **extra,
        )

    return _make
