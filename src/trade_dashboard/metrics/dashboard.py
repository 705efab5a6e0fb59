from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Any, Iterable

from trade_dashboard.metrics.common import BucketPerformance, RankedValue, as_list
from trade_dashboard.metrics.holding import HoldingBucket, compute_time_held
from trade_dashboard.metrics.performance import (
    TOP_LIMIT,
    compute_day_performance,
    compute_time_performance,
    compute_top_setups,
    compute_top_symbols,
)
from trade_dashboard.metrics.summary import (
    HEALTH_WEEKS,
    CircularSummary,
    Gauge,
    HealthPoint,
    KeyMetrics,
    TradeStats,
    compute_circular_summary,
    compute_health_trend,
)
from trade_dashboard.models import Trade


@dataclass(frozen=True)
class DashboardViews:
    circular: CircularSummary
    health: list[HealthPoint]
    day_performance: list[BucketPerformance]
    time_performance: list[BucketPerformance]
    top_setups: list[RankedValue]
    top_symbols: list[RankedValue]
    time_held: list[HoldingBucket]


def compute_dashboard_views(
    trades: Iterable[Trade] | None,
    *,
    tz: tzinfo | None = None,
    today: date | None = None,
    health_weeks: int = HEALTH_WEEKS,
    top_limit: int = TOP_LIMIT,
) -> DashboardViews:
    # Materialize once so generators feed every view the same snapshot.
    trade_list = as_list(trades)
    return DashboardViews(
        circular=compute_circular_summary(trade_list),
        health=compute_health_trend(trade_list, tz=tz, today=today, weeks=health_weeks),
        day_performance=compute_day_performance(trade_list, tz=tz),
        time_performance=compute_time_performance(trade_list, tz=tz),
        top_setups=compute_top_setups(trade_list, limit=top_limit),
        top_symbols=compute_top_symbols(trade_list, limit=top_limit),
        time_held=compute_time_held(trade_list),
    )


def views_payload(views: DashboardViews) -> dict[str, Any]:
    return {
        "circularData": circular_payload(views.circular),
        "healthData": [{"date": point.date, "value": point.value} for point in views.health],
        "dayPerformance": [_bucket_payload(row) for row in views.day_performance],
        "timePerformance": [_bucket_payload(row) for row in views.time_performance],
        "topSetups": [_ranked_payload(row) for row in views.top_setups],
        "topSymbols": [_ranked_payload(row) for row in views.top_symbols],
        "timeHeldCategories": [
            {
                "name": row.name,
                "count": row.count,
                "winRate": row.win_rate,
                "netProfit": row.net_profit,
            }
            for row in views.time_held
        ],
    }


def circular_payload(summary: CircularSummary) -> dict[str, dict[str, Any]]:
    return {
        "profits": _gauge_payload(summary.profits),
        "winRate": _gauge_payload(summary.win_rate),
        "rulesFollowed": _gauge_payload(summary.rules_followed),
        "profitFactor": _gauge_payload(summary.profit_factor),
    }


def key_metrics_payload(metrics: KeyMetrics) -> dict[str, Any]:
    return {
        "totalPL": metrics.total_pl,
        "winRate": metrics.win_rate,
        "wins": metrics.wins,
        "losses": metrics.losses,
        "profitFactor": metrics.profit_factor,
        "averageWin": metrics.average_win,
        "averageLoss": metrics.average_loss,
        "maxDrawdown": metrics.max_drawdown,
        "monthPL": metrics.month_pl,
    }


def trade_stats_payload(stats: TradeStats) -> dict[str, Any]:
    return {
        "totalTrades": stats.total_trades,
        "totalPL": stats.total_pl,
        "winRate": stats.win_rate,
    }


def _gauge_payload(gauge: Gauge) -> dict[str, Any]:
    return {"title": gauge.title, "value": gauge.value, "total": gauge.total, "suffix": gauge.suffix}


def _bucket_payload(row: BucketPerformance) -> dict[str, Any]:
    return {"name": row.name, "profit": row.profit, "winRate": row.win_rate}


def _ranked_payload(row: RankedValue) -> dict[str, Any]:
    return {"name": row.name, "value": row.value}
