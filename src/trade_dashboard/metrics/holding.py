from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from trade_dashboard.metrics.common import as_list, win_rate_pct
from trade_dashboard.models import Trade

INTRADAY = "Intraday"
SEVERAL_DAYS = "Several Days"
WEEK_PLUS = "Week+"

HOLDING_BUCKETS = (INTRADAY, SEVERAL_DAYS, WEEK_PLUS)

_INTRADAY_MAX_HOURS = 24.0
_SEVERAL_DAYS_MAX_HOURS = 24.0 * 7


@dataclass(frozen=True)
class HoldingBucket:
    name: str
    count: int
    win_rate: int
    net_profit: float


def holding_bucket(hours: float) -> str:
    if hours <= _INTRADAY_MAX_HOURS:
        return INTRADAY
    if hours <= _SEVERAL_DAYS_MAX_HOURS:
        return SEVERAL_DAYS
    return WEEK_PLUS


def compute_time_held(trades: Iterable[Trade] | None) -> list[HoldingBucket]:
    """Bucket closed trades by how long they were held.

    Trades without both an entry and an exit date are left out entirely.
    ``net_profit`` is the unrounded P&L sum of the bucket.
    """
    counts = {name: 0 for name in HOLDING_BUCKETS}
    wins = {name: 0 for name in HOLDING_BUCKETS}
    net = {name: 0.0 for name in HOLDING_BUCKETS}

    for trade in as_list(trades):
        hours = trade.holding_hours
        if hours is None:
            continue
        name = holding_bucket(hours)
        counts[name] += 1
        net[name] += trade.pnl
        if trade.is_win:
            wins[name] += 1

    return [
        HoldingBucket(
            name=name,
            count=counts[name],
            win_rate=win_rate_pct(wins[name], counts[name]),
            net_profit=net[name],
        )
        for name in HOLDING_BUCKETS
    ]
