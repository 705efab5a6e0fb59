from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Iterable

from trade_dashboard.models import Trade

PROFIT_FACTOR_CAP = 3.0


@dataclass(frozen=True)
class BucketPerformance:
    name: str
    profit: int
    win_rate: int


@dataclass(frozen=True)
class RankedValue:
    name: str
    value: int


def as_list(trades: Iterable[Trade] | None) -> list[Trade]:
    if trades is None:
        return []
    return list(trades)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with ties going towards +inf, the way chart labels expect.

    ``round()`` uses banker's rounding, so ``round(2.5) == 2``; dashboards
    built on the same figures elsewhere report ``3``.
    """
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def round_int(value: float) -> int:
    return int(round_half_up(value))


def local_time(value: datetime, tz: tzinfo | None = None) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(tz)


def gross_profit(trades: Iterable[Trade]) -> float:
    return sum(trade.pnl for trade in trades if trade.is_win)


def gross_loss(trades: Iterable[Trade]) -> float:
    return abs(sum(trade.pnl for trade in trades if trade.is_loss))


def profit_factor(total_profit: float, total_loss: float, *, no_loss_value: float) -> float:
    if total_loss > 0:
        return total_profit / total_loss
    if total_profit > 0:
        return no_loss_value
    return 0.0


def win_rate_pct(wins: int, total: int) -> int:
    if not total:
        return 0
    return round_int(wins / total * 100)


def bucket_performance(name: str, pnls: list[float]) -> BucketPerformance:
    total = len(pnls)
    wins = sum(1 for value in pnls if value > 0)
    profit = round_int(sum(pnls) / total) if total else 0
    return BucketPerformance(name=name, profit=profit, win_rate=win_rate_pct(wins, total))
