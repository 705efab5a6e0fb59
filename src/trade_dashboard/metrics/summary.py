from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable

from trade_dashboard.metrics.common import (
    PROFIT_FACTOR_CAP,
    as_list,
    gross_loss,
    gross_profit,
    local_time,
    profit_factor,
    round_half_up,
    round_int,
    win_rate_pct,
)
from trade_dashboard.models import Trade

PROFIT_SCALE_FLOOR = 1000.0
HEALTH_WEEKS = 7
HEALTH_PLACEHOLDER_STEP_DAYS = 5
KEY_METRICS_NO_LOSS_FACTOR = 999.0


@dataclass(frozen=True)
class Gauge:
    title: str
    value: float
    total: float
    suffix: str


@dataclass(frozen=True)
class CircularSummary:
    profits: Gauge
    win_rate: Gauge
    rules_followed: Gauge
    profit_factor: Gauge


@dataclass(frozen=True)
class HealthPoint:
    date: str
    value: float


@dataclass(frozen=True)
class KeyMetrics:
    total_pl: float
    win_rate: int
    wins: int
    losses: int
    profit_factor: float
    average_win: float
    average_loss: float
    max_drawdown: float
    month_pl: float


@dataclass(frozen=True)
class TradeStats:
    total_trades: int
    total_pl: float
    win_rate: float


def compute_circular_summary(trades: Iterable[Trade] | None) -> CircularSummary:
    trade_list = as_list(trades)
    if not trade_list:
        return CircularSummary(
            profits=Gauge("Total Profits", 0, 1, "$"),
            win_rate=Gauge("Win Rate", 0, 100, "%"),
            rules_followed=Gauge("Rules Followed", 0, 100, "%"),
            profit_factor=Gauge("Profit Factor", 0, PROFIT_FACTOR_CAP, ""),
        )

    total_pl = sum(trade.pnl for trade in trade_list)
    wins = sum(1 for trade in trade_list if trade.is_win)
    win_rate = win_rate_pct(wins, len(trade_list))
    compliance = sum(_rules_followed_fraction(trade) for trade in trade_list) / len(trade_list)
    rules_followed = round_int(compliance * 100)

    factor = profit_factor(
        gross_profit(trade_list), gross_loss(trade_list), no_loss_value=PROFIT_FACTOR_CAP
    )
    factor = round_half_up(factor, 2)

    return CircularSummary(
        profits=Gauge("Total Profits", total_pl, max(abs(total_pl), PROFIT_SCALE_FLOOR), "$"),
        win_rate=Gauge("Win Rate", win_rate, 100, "%"),
        rules_followed=Gauge("Rules Followed", rules_followed, 100, "%"),
        profit_factor=Gauge("Profit Factor", min(factor, PROFIT_FACTOR_CAP), PROFIT_FACTOR_CAP, ""),
    )


def _rules_followed_fraction(trade: Trade) -> float:
    followed = len(trade.rules_followed or [])
    violated = len(trade.rules_violated or [])
    total = followed + violated
    if not total:
        return 0.0
    return followed / total


def compute_health_trend(
    trades: Iterable[Trade] | None,
    *,
    tz: tzinfo | None = None,
    today: date | None = None,
    weeks: int = HEALTH_WEEKS,
) -> list[HealthPoint]:
    """Weekly composite of win rate and profit factor.

    Health is ``(win_rate * 2 + min(pf, 3) / 3) / 3 * 3`` rounded to one
    decimal, so it spans roughly 0..3. The formula is kept exactly as the
    dashboard has always reported it.
    """
    trade_list = as_list(trades)
    if not trade_list:
        anchor = today or date.today()
        placeholders = [
            HealthPoint(date=_week_label(anchor - timedelta(days=idx * HEALTH_PLACEHOLDER_STEP_DAYS)), value=0)
            for idx in range(weeks)
        ]
        placeholders.reverse()
        return placeholders

    buckets: dict[date, list[Trade]] = defaultdict(list)
    for trade in trade_list:
        if trade.entry_date is None:
            continue
        buckets[week_start(local_time(trade.entry_date, tz).date())].append(trade)

    points: list[HealthPoint] = []
    for key in sorted(buckets)[-weeks:]:
        items = buckets[key]
        win_rate = sum(1 for trade in items if trade.is_win) / len(items)
        factor = profit_factor(gross_profit(items), gross_loss(items), no_loss_value=PROFIT_FACTOR_CAP)
        health = (win_rate * 2 + min(factor, PROFIT_FACTOR_CAP) / PROFIT_FACTOR_CAP) / 3 * 3
        points.append(HealthPoint(date=_week_label(key), value=round_half_up(health, 1)))
    return points


def week_start(day: date) -> date:
    # Weeks start on Sunday.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _week_label(day: date) -> str:
    return f"{day:%b} {day.day}"


def compute_key_metrics(trades: Iterable[Trade] | None, *, now: datetime | None = None) -> KeyMetrics:
    trade_list = as_list(trades)
    if not trade_list:
        return KeyMetrics(
            total_pl=0.0,
            win_rate=0,
            wins=0,
            losses=0,
            profit_factor=0.0,
            average_win=0.0,
            average_loss=0.0,
            max_drawdown=0.0,
            month_pl=0.0,
        )

    winners = [trade for trade in trade_list if trade.is_win]
    losers = [trade for trade in trade_list if trade.is_loss]
    total_profit = gross_profit(winners)
    total_loss = gross_loss(losers)

    factor = profit_factor(total_profit, total_loss, no_loss_value=KEY_METRICS_NO_LOSS_FACTOR)
    if total_loss > 0:
        factor = round_half_up(factor, 2)

    return KeyMetrics(
        total_pl=sum(trade.pnl for trade in trade_list),
        win_rate=win_rate_pct(len(winners), len(trade_list)),
        wins=len(winners),
        losses=len(losers),
        profit_factor=factor,
        average_win=total_profit / len(winners) if winners else 0.0,
        average_loss=total_loss / len(losers) if losers else 0.0,
        max_drawdown=_max_drawdown(trade_list),
        month_pl=_month_pl(trade_list, now),
    )


def _chronological(trades: list[Trade]) -> list[Trade]:
    dated = [trade for trade in trades if trade.entry_date is not None]
    undated = [trade for trade in trades if trade.entry_date is None]
    dated.sort(key=lambda trade: trade.entry_date)
    return dated + undated


def _max_drawdown(trades: list[Trade]) -> float:
    """Peak-to-trough drop of cumulative P&L, walked oldest entry first.

    Input order is ignored, so a newest-first list gives the same result as
    an oldest-first one. Undated trades are walked last.
    """
    peak = 0.0
    equity = 0.0
    max_dd = 0.0
    for trade in _chronological(trades):
        equity += trade.pnl
        if equity > peak:
            peak = equity
        max_dd = max(max_dd, peak - equity)
    return max_dd


def _month_pl(trades: list[Trade], now: datetime | None) -> float:
    reference = now or datetime.now().astimezone()
    start = _shift_month(reference, -1)
    total = 0.0
    for trade in trades:
        entry = trade.entry_date
        if entry is None:
            continue
        if entry.tzinfo is None and reference.tzinfo is not None:
            entry = entry.replace(tzinfo=reference.tzinfo)
        elif entry.tzinfo is not None and reference.tzinfo is None:
            entry = local_time(entry).replace(tzinfo=None)
        if start <= entry < reference:
            total += trade.pnl
    return total


def _shift_month(value: datetime, delta: int) -> datetime:
    """Move by whole calendar months, clamping to the target month's last day.

    Mar 31 minus one month is Feb 29 (2024), not a rollover into March.
    """
    year = value.year + (value.month - 1 + delta) // 12
    month = (value.month - 1 + delta) % 12 + 1
    day = min(value.day, _days_in_month(year, month))
    return value.replace(year=year, month=month, day=day)


def _days_in_month(year: int, month: int) -> int:
    next_month = date(year + month // 12, month % 12 + 1, 1)
    return (next_month - timedelta(days=1)).day


def compute_trade_stats(trades: Iterable[Trade] | None) -> TradeStats:
    trade_list = as_list(trades)
    total = len(trade_list)
    wins = sum(1 for trade in trade_list if trade.is_win)
    win_rate = round_half_up(wins / total * 100, 1) if total else 0.0
    return TradeStats(
        total_trades=total,
        total_pl=sum(trade.pnl for trade in trade_list),
        win_rate=win_rate,
    )
