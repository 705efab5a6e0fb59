from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from trade_dashboard.metrics.dashboard import circular_payload
from trade_dashboard.metrics.summary import (
    compute_circular_summary,
    compute_health_trend,
    compute_key_metrics,
    compute_trade_stats,
    week_start,
)


class TestCircularSummary:
    def test_empty_input_uses_fixed_denominators(self):
        payload = circular_payload(compute_circular_summary(None))
        assert {key: (gauge["value"], gauge["total"]) for key, gauge in payload.items()} == {
            "profits": (0, 1),
            "winRate": (0, 100),
            "rulesFollowed": (0, 100),
            "profitFactor": (0, 3),
        }

    def test_two_trade_example(self, make_trade):
        trades = [
            make_trade(100, entry=datetime(2024, 1, 1, 8)),
            make_trade(-50, entry=datetime(2024, 1, 2, 8)),
        ]
        summary = compute_circular_summary(trades)
        assert summary.profits.value == 50
        assert summary.profits.total == 1000
        assert summary.win_rate.value == 50
        assert summary.profit_factor.value == 2

    def test_profit_scale_follows_large_totals(self, make_trade):
        summary = compute_circular_summary([make_trade(-2500)])
        assert summary.profits.value == -2500
        assert summary.profits.total == 2500

    def test_profit_factor_without_losses_is_capped(self, make_trade):
        summary = compute_circular_summary([make_trade(10), make_trade(20)])
        assert summary.profit_factor.value == 3

    def test_profit_factor_display_capped_at_three(self, make_trade):
        summary = compute_circular_summary([make_trade(1000), make_trade(-100)])
        assert summary.profit_factor.value == 3

    def test_profit_factor_zero_when_flat(self, make_trade):
        summary = compute_circular_summary([make_trade(0), make_trade(None)])
        assert summary.profit_factor.value == 0
        assert summary.win_rate.value == 0

    def test_rules_followed_counts_unrecorded_trades_as_zero(self, make_trade):
        trades = [
            make_trade(10, followed=["A", "B"], violated=["C"]),
            make_trade(10),
        ]
        # mean of 2/3 and 0 -> 33.3%
        assert compute_circular_summary(trades).rules_followed.value == 33

    def test_win_rate_rounds_half_up(self, make_trade):
        trades = [make_trade(1)] + [make_trade(-1)] * 7
        # 12.5% rounds to 13
        assert compute_circular_summary(trades).win_rate.value == 13

    def test_missing_pnl_counts_as_zero(self, make_trade):
        summary = compute_circular_summary([make_trade(None), make_trade(40)])
        assert summary.profits.value == 40
        assert summary.win_rate.value == 50


class TestHealthTrend:
    def test_empty_input_placeholders(self):
        points = compute_health_trend([], today=date(2024, 3, 31))
        assert [point.date for point in points] == [
            "Mar 1",
            "Mar 6",
            "Mar 11",
            "Mar 16",
            "Mar 21",
            "Mar 26",
            "Mar 31",
        ]
        assert all(point.value == 0 for point in points)

    def test_weeks_start_on_sunday(self):
        assert week_start(date(2024, 1, 1)) == date(2023, 12, 31)
        assert week_start(date(2023, 12, 31)) == date(2023, 12, 31)
        assert week_start(date(2024, 1, 6)) == date(2023, 12, 31)

    def test_health_formula(self, make_trade):
        trades = [
            make_trade(100, entry=datetime(2024, 1, 2, 9)),
            make_trade(-50, entry=datetime(2024, 1, 3, 9)),
        ]
        points = compute_health_trend(trades)
        # win rate 0.5, pf 2 -> (1 + 2/3) / 3 * 3
        assert len(points) == 1
        assert points[0].date == "Dec 31"
        assert points[0].value == pytest.approx(1.7)

    def test_keeps_latest_weeks_ascending(self, make_trade):
        trades = [make_trade(10, entry=datetime(2024, 1, 1 + 7 * week, 9)) for week in range(4)]
        trades += [make_trade(10, entry=datetime(2024, 2, 5, 9) + timedelta(weeks=week)) for week in range(5)]
        points = compute_health_trend(trades)
        assert len(points) == 7
        assert points[0].date == "Jan 14"
        assert points[-1].date == "Mar 3"
        assert all(point.value == 3 for point in points)

    def test_skips_trades_without_entry(self, make_trade):
        points = compute_health_trend([make_trade(-10, entry=None), make_trade(10)])
        assert len(points) == 1
        assert points[0].value == 3

    def test_all_undated_yields_no_points(self, make_trade):
        assert compute_health_trend([make_trade(10, entry=None)]) == []


class TestKeyMetrics:
    def test_empty(self):
        metrics = compute_key_metrics([])
        assert metrics.total_pl == 0
        assert metrics.profit_factor == 0
        assert metrics.max_drawdown == 0

    def test_basic_figures(self, make_trade):
        trades = [make_trade(300), make_trade(-100), make_trade(-50), make_trade(100)]
        metrics = compute_key_metrics(trades, now=datetime(2024, 6, 1))
        assert metrics.total_pl == 250
        assert metrics.wins == 2
        assert metrics.losses == 2
        assert metrics.win_rate == 50
        assert metrics.average_win == 200
        assert metrics.average_loss == 75
        assert metrics.profit_factor == pytest.approx(2.67)

    def test_profit_factor_without_losses(self, make_trade):
        assert compute_key_metrics([make_trade(5)]).profit_factor == 999

    def test_max_drawdown_in_entry_order(self, make_trade):
        trades = [
            make_trade(-80, entry=datetime(2024, 1, 4)),
            make_trade(100, entry=datetime(2024, 1, 2)),
            make_trade(-30, entry=datetime(2024, 1, 3)),
            make_trade(50, entry=datetime(2024, 1, 5)),
        ]
        # equity: 100, 70, -10, 40 -> peak 100, trough -10
        assert compute_key_metrics(trades).max_drawdown == 110

    def test_max_drawdown_ignores_newest_first_order(self, make_trade):
        trades = [
            make_trade(-60, entry=datetime(2024, 1, 3)),
            make_trade(100, entry=datetime(2024, 1, 2)),
            make_trade(None, entry=None),
        ]
        assert compute_key_metrics(trades).max_drawdown == 60
        assert compute_key_metrics(list(reversed(trades))).max_drawdown == 60

    def test_month_pl_window(self, make_trade):
        now = datetime(2024, 3, 31, 12)
        trades = [
            make_trade(10, entry=datetime(2024, 3, 1)),
            make_trade(20, entry=datetime(2024, 2, 29, 13)),
            make_trade(40, entry=datetime(2024, 2, 29, 11)),
            make_trade(80, entry=None),
        ]
        # window opens on Feb 29 12:00 (clamped day)
        assert compute_key_metrics(trades, now=now).month_pl == 30


class TestTradeStats:
    def test_empty(self):
        stats = compute_trade_stats(None)
        assert stats.total_trades == 0
        assert stats.win_rate == 0

    def test_win_rate_one_decimal(self, make_trade):
        stats = compute_trade_stats([make_trade(1), make_trade(-1), make_trade(-1)])
        assert stats.total_trades == 3
        assert stats.win_rate == pytest.approx(33.3)
        assert stats.total_pl == -1
