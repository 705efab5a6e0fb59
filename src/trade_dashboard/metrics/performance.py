from __future__ import annotations

from datetime import tzinfo
from typing import Callable, Iterable

from trade_dashboard.metrics.common import (
    BucketPerformance,
    RankedValue,
    as_list,
    bucket_performance,
    local_time,
    round_int,
)
from trade_dashboard.models import Trade

TOP_LIMIT = 4
NO_DATA = "No Data"

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
TRADING_DAYS = WEEKDAY_NAMES[:5]
TIME_SLOTS = ("6AM", "9AM", "12PM", "3PM", "6PM")


def compute_day_performance(
    trades: Iterable[Trade] | None, *, tz: tzinfo | None = None
) -> list[BucketPerformance]:
    buckets: dict[str, list[float]] = {name: [] for name in WEEKDAY_NAMES}
    for trade in as_list(trades):
        if trade.entry_date is None:
            continue
        day = WEEKDAY_NAMES[local_time(trade.entry_date, tz).weekday()]
        buckets[day].append(trade.pnl)
    # Weekend buckets are collected but never charted.
    return [bucket_performance(name, buckets[name]) for name in TRADING_DAYS]


def time_slot(hour: int) -> str:
    if hour < 7:
        return "6AM"
    if hour < 10:
        return "9AM"
    if hour < 13:
        return "12PM"
    if hour < 16:
        return "3PM"
    return "6PM"


def compute_time_performance(
    trades: Iterable[Trade] | None, *, tz: tzinfo | None = None
) -> list[BucketPerformance]:
    buckets: dict[str, list[float]] = {name: [] for name in TIME_SLOTS}
    for trade in as_list(trades):
        if trade.entry_date is None:
            continue
        buckets[time_slot(local_time(trade.entry_date, tz).hour)].append(trade.pnl)
    return [bucket_performance(name, buckets[name]) for name in TIME_SLOTS]


def compute_top_setups(trades: Iterable[Trade] | None, *, limit: int = TOP_LIMIT) -> list[RankedValue]:
    return _top_by(trades, lambda trade: trade.setup_name, limit)


def compute_top_symbols(trades: Iterable[Trade] | None, *, limit: int = TOP_LIMIT) -> list[RankedValue]:
    return _top_by(trades, lambda trade: trade.symbol, limit)


def _top_by(
    trades: Iterable[Trade] | None,
    key: Callable[[Trade], str],
    limit: int,
) -> list[RankedValue]:
    trade_list = as_list(trades)
    if not trade_list:
        return [RankedValue(name=NO_DATA, value=0)]

    totals: dict[str, float] = {}
    for trade in trade_list:
        name = key(trade)
        totals[name] = totals.get(name, 0.0) + trade.pnl

    rows = [RankedValue(name=name, value=round_int(total)) for name, total in totals.items()]
    rows.sort(key=lambda row: row.value, reverse=True)
    return rows[:limit]
